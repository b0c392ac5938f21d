"""
User profile and identity account models.

`Account` belongs to the identity provider adapter (credentials only);
`UserProfile` is the application's `users` document keyed by the same uid.
"""

from sqlalchemy import Column, String, Text, Boolean, DateTime, JSON
from parcel_tracker.app.db.session import Base


class Account(Base):
    """Identity provider account (email/password credentials)."""
    __tablename__ = "accounts"

    uid = Column(String(64), primary_key=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Account(uid={self.uid}, email='{self.email}')>"


class UserProfile(Base):
    """
    User profile document.

    Created on sign-up, edited from profile settings, deleted with the account.
    """
    __tablename__ = "users"

    uid = Column(String(64), primary_key=True)
    name = Column(Text, nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    profile_picture = Column(String(1000), nullable=True)
    is_email_verified = Column(Boolean, default=False, nullable=False)
    two_factor_enabled = Column(Boolean, default=False, nullable=False)

    # Replaced wholesale on update; NULL until first read
    security_settings = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<UserProfile(uid={self.uid}, email='{self.email}')>"
