"""
Authentication API endpoints.

Sign-up, sign-in, sign-out and current-user lookup for mobile and web clients.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Header, Request, status
from parcel_tracker.app.backend.identity import AuthSession, AuthUser
from parcel_tracker.app.schemas.auth import UserSignUp, UserLogin, TokenResponse, CurrentUserResponse
from parcel_tracker.app.core.dependencies import get_bearer_token, get_current_user, get_session_manager
from parcel_tracker.app.services.session_manager import SessionManager

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _token_response(session: AuthSession) -> TokenResponse:
    return TokenResponse(
        access_token=session.access_token,
        token_type=session.token_type,
        uid=session.user.uid,
        email=session.user.email,
    )


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    user_data: UserSignUp,
    sessions: SessionManager = Depends(get_session_manager),
):
    """
    Create an account and its profile.

    Each provider rejection (email in use, weak password, invalid email,
    configuration) comes back with its own error code and message.
    """
    session = await sessions.sign_up(user_data.email, user_data.password, user_data.name)
    return _token_response(session)


@router.post("/login", response_model=TokenResponse)
async def login(
    credentials: UserLogin,
    request: Request,
    user_agent: Optional[str] = Header(default=None),
    sessions: SessionManager = Depends(get_session_manager),
):
    """
    Login user and return a session token.

    Successful and failed attempts are recorded in the login history.
    """
    session = await sessions.sign_in(
        credentials.email,
        credentials.password,
        user_agent=user_agent,
        ip_address=request.client.host if request.client else None,
    )
    return _token_response(session)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    token: str = Depends(get_bearer_token),
    sessions: SessionManager = Depends(get_session_manager),
):
    """Revoke the presented token."""
    await sessions.sign_out(token)


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user_info(current_user: AuthUser = Depends(get_current_user)):
    """Get current authenticated user information."""
    return CurrentUserResponse(uid=current_user.uid, email=current_user.email)
