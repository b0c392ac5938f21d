"""
FastAPI dependencies.

Resolve the backend client from application state, authenticate bearer
tokens, and build the services each endpoint needs.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from parcel_tracker.app.backend.client import BackendClient
from parcel_tracker.app.backend.identity import AuthUser
from parcel_tracker.app.services.parcel_repository import ParcelRepository
from parcel_tracker.app.services.profile_service import ProfileService
from parcel_tracker.app.services.security_service import SecurityService
from parcel_tracker.app.services.session_manager import SessionManager

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_backend(request: Request) -> BackendClient:
    return request.app.state.backend


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_bearer_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> str:
    if credentials is None:
        raise _unauthorized()
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_bearer_token),
    backend: BackendClient = Depends(get_backend),
) -> AuthUser:
    """
    FastAPI dependency for bearer-token authentication.

    Rejects tokens that are malformed, expired, signed out, or whose
    account has been deleted.

    Raises:
        HTTPException: 401 if authentication fails for any reason
    """
    user = await backend.identity.verify_token(token)
    if user is None:
        raise _unauthorized()
    return user


def get_parcel_repository(backend: BackendClient = Depends(get_backend)) -> ParcelRepository:
    return ParcelRepository(backend)


def get_profile_service(backend: BackendClient = Depends(get_backend)) -> ProfileService:
    return ProfileService(backend)


def get_security_service(backend: BackendClient = Depends(get_backend)) -> SecurityService:
    return SecurityService(backend)
