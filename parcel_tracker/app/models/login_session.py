"""
Login session audit model.

Append-only record of every sign-in attempt; never updated or deleted.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime
from parcel_tracker.app.db.session import Base


class LoginSession(Base):
    __tablename__ = "login_sessions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)

    ip_address = Column(String(50), nullable=False, default="unknown")
    user_agent = Column(Text, nullable=False, default="unknown")

    # Derived from ip_address / user_agent at write time
    location = Column(String(200), nullable=True)
    device_type = Column(String(50), nullable=True)

    success = Column(Boolean, nullable=False, index=True)
    failure_reason = Column(Text, nullable=True)

    def __repr__(self):
        return f"<LoginSession(id={self.id}, user_id={self.user_id}, success={self.success})>"
