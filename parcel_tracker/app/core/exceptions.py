"""
Custom exceptions and error handlers for consistent error responses.

Every failure surfaced by the services belongs to one closed `ErrorKind`.
Backend collaborator errors (provider error codes, SQLAlchemy and
connectivity exceptions) are translated here and nowhere else.
"""

import asyncio
import enum
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, DisconnectionError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    """Closed set of failure kinds produced by the service layer."""
    VALIDATION = "VALIDATION"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    WRONG_PASSWORD = "WRONG_PASSWORD"
    EMAIL_IN_USE = "EMAIL_IN_USE"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    INVALID_EMAIL = "INVALID_EMAIL"
    CONFIG = "CONFIG"
    NETWORK = "NETWORK"
    NOT_FOUND = "NOT_FOUND"
    PERSISTENCE = "PERSISTENCE"
    UNKNOWN = "UNKNOWN"


USER_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: "Please correct the highlighted fields.",
    ErrorKind.INVALID_CREDENTIALS: "Invalid email or password",
    ErrorKind.WRONG_PASSWORD: "Current password is incorrect",
    ErrorKind.EMAIL_IN_USE: "This email is already registered. Please use a different email.",
    ErrorKind.WEAK_PASSWORD: "Password is too weak. Please choose a stronger password.",
    ErrorKind.INVALID_EMAIL: "Please enter a valid email address.",
    ErrorKind.CONFIG: "Configuration error. Please contact support.",
    ErrorKind.NETWORK: "Network error. Please check your internet connection.",
    ErrorKind.NOT_FOUND: "The requested item no longer exists.",
    ErrorKind.PERSISTENCE: "Failed to save changes. Please try again.",
    ErrorKind.UNKNOWN: "Something went wrong. Please try again.",
}


class ProviderError(Exception):
    """
    Raw error raised by a backend collaborator adapter.

    Carries a loosely-typed string code (e.g. "auth/wrong-password").
    Never escapes the service layer: see `translate_exception`.
    """

    def __init__(self, code: str, message: str = ""):
        self.code = code
        self.message = message or code
        super().__init__(f"{code}: {self.message}")


class AppException(Exception):
    """Base application exception."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[str] = None,
        status_code: int = 500,
        details: Dict[str, Any] = None,
    ):
        self.message = message or USER_MESSAGES[self.kind]
        self.error_code = error_code or f"ERR_{self.kind.value}"
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class InputValidationError(AppException):
    """Raised when caller-supplied input fails required-field or type checks."""

    kind = ErrorKind.VALIDATION

    def __init__(self, field_errors: Dict[str, str], message: Optional[str] = None):
        self.field_errors = field_errors
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"fields": field_errors},
        )


class InvalidCredentialsError(AppException):
    """Raised when sign-in fails because of a bad email/password pair."""

    kind = ErrorKind.INVALID_CREDENTIALS

    def __init__(self, message: Optional[str] = None):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED)


class WrongPasswordError(AppException):
    """Raised when re-authentication with the current password fails."""

    kind = ErrorKind.WRONG_PASSWORD

    def __init__(self, message: Optional[str] = None):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN)


class EmailInUseError(AppException):
    kind = ErrorKind.EMAIL_IN_USE

    def __init__(self, message: Optional[str] = None):
        super().__init__(message=message, status_code=status.HTTP_409_CONFLICT)


class WeakPasswordError(AppException):
    kind = ErrorKind.WEAK_PASSWORD

    def __init__(self, message: Optional[str] = None):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST)


class InvalidEmailError(AppException):
    kind = ErrorKind.INVALID_EMAIL

    def __init__(self, message: Optional[str] = None):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST)


class ConfigurationError(AppException):
    """Raised when the backend rejects the static project configuration."""

    kind = ErrorKind.CONFIG

    def __init__(self, message: Optional[str] = None):
        super().__init__(message=message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


class NetworkError(AppException):
    """Transient connectivity failure. Never retried by this layer."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: Optional[str] = None):
        super().__init__(message=message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id},
        )


class PersistenceError(AppException):
    """Raised when the document store rejects a write."""

    kind = ErrorKind.PERSISTENCE

    def __init__(self, message: Optional[str] = None, details: Dict[str, Any] = None, status_code: int = 500):
        super().__init__(message=message, status_code=status_code, details=details)


class ConcurrentUpdateError(PersistenceError):
    """Raised when another writer changed the document first."""

    def __init__(self, resource: str, resource_id: Any = None):
        super().__init__(
            message=f"{resource} was modified by another update. Reload and try again.",
            details={"resource": resource, "id": resource_id, "reason": "conflict"},
            status_code=status.HTTP_409_CONFLICT,
        )


class UnknownProviderError(AppException):
    """Fallback for provider error codes with no dedicated kind."""

    kind = ErrorKind.UNKNOWN

    def __init__(self, code: str):
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, details={"provider_code": code})


# Provider error code -> exception class
PROVIDER_ERROR_MAP = {
    "auth/invalid-credential": InvalidCredentialsError,
    "auth/user-not-found": InvalidCredentialsError,
    "auth/wrong-password": WrongPasswordError,
    "auth/email-already-in-use": EmailInUseError,
    "auth/weak-password": WeakPasswordError,
    "auth/invalid-email": InvalidEmailError,
    "auth/invalid-api-key": ConfigurationError,
    "auth/network-request-failed": NetworkError,
    "storage/retry-limit-exceeded": NetworkError,
}


def translate_provider_error(exc: ProviderError) -> AppException:
    """Map a provider error code onto the closed error taxonomy."""
    if exc.code == "storage/object-not-found":
        return ResourceNotFoundError("Object", exc.message)

    error_cls = PROVIDER_ERROR_MAP.get(exc.code)
    if error_cls is None:
        logger.warning("Unrecognized provider error code %s", exc.code)
        return UnknownProviderError(exc.code)
    return error_cls()


def translate_exception(exc: BaseException) -> AppException:
    """
    Translate any collaborator-side exception into an `AppException`.

    Args:
        exc: Exception raised while talking to a backend collaborator

    Returns:
        The typed application exception to raise in its place
    """
    if isinstance(exc, AppException):
        return exc
    if isinstance(exc, ProviderError):
        return translate_provider_error(exc)
    if isinstance(exc, StaleDataError):
        return ConcurrentUpdateError("Document")
    if isinstance(exc, DisconnectionError):
        return NetworkError()
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return NetworkError()
    if isinstance(exc, SQLAlchemyError):
        return PersistenceError(details={"reason": type(exc).__name__})
    if isinstance(exc, (ConnectionError, TimeoutError, asyncio.TimeoutError, OSError)):
        return NetworkError()
    # redis-py exceptions do not derive from the builtin ConnectionError
    if type(exc).__module__.startswith("redis"):
        return NetworkError()
    return PersistenceError(details={"reason": type(exc).__name__})


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": exc.errors()
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )


@contextmanager
def collaborator_errors(operation: str) -> Iterator[None]:
    """
    Translate collaborator failures raised inside the block.

    Usage:
        with collaborator_errors("create parcel"):
            await db.commit()
    """
    try:
        yield
    except AppException:
        raise
    except Exception as exc:
        translated = translate_exception(exc)
        logger.warning(
            "%s failed: %s (%s)", operation, translated.error_code, type(exc).__name__
        )
        raise translated from exc
