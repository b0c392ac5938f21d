"""
Authentication Pydantic schemas.

Defines request and response schemas for authentication endpoints.
Email format and password strength are judged by the identity provider so
that its error codes map onto the same messages for every client.
"""

from pydantic import BaseModel, Field


class UserSignUp(BaseModel):
    """
    Schema for account creation.

    Used by POST /auth/signup endpoint.
    """
    email: str = Field(..., description="User email address")
    password: str = Field(..., description="Password (min 6 characters)")
    name: str = Field(..., description="Display name")


class UserLogin(BaseModel):
    """
    Schema for user login.

    Used by POST /auth/login endpoint.
    """
    email: str = Field(..., description="Email")
    password: str = Field(..., description="Password")


class TokenResponse(BaseModel):
    """
    Schema for session token response.

    Returned by successful login/signup operations.
    """
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    uid: str = Field(..., description="Account ID")
    email: str = Field(..., description="Email address")


class CurrentUserResponse(BaseModel):
    uid: str
    email: str
