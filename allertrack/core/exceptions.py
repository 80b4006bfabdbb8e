"""
Custom exceptions for AllerTrack.

These exceptions provide clear error semantics across the system.
Use them to distinguish missing sessions, absent records, bad input,
an unreachable backing store and transient network trouble.
"""

import logging
from datetime import datetime, timezone
from typing import Awaitable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AllerTrackError(Exception):
    """Base exception carrying an HTTP-like status and a stable code."""

    status: int = 500
    code: str = "INTERNAL_ERROR"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        if code is not None:
            self.code = code


class UnauthenticatedError(AllerTrackError):
    """Raised when no owner can be resolved and demo mode is off."""

    status = 401
    code = "AUTH_REQUIRED"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class NotFoundError(AllerTrackError):
    """Raised when an incident is absent or owned by someone else."""

    status = 404
    code = "NOT_FOUND"

    def __init__(self, message: str = "Incident not found"):
        super().__init__(message)


class DataValidationError(AllerTrackError):
    """Raised when input data fails validation."""

    status = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class StorageUnavailableError(AllerTrackError):
    """Raised when the backing store is unreachable or misconfigured."""

    status = 503
    code = "STORAGE_UNAVAILABLE"

    def __init__(
        self,
        message: str = "Storage is not available",
        status: Optional[int] = None,
        retryable: bool = False,
    ):
        super().__init__(message, status=status)
        self.retryable = retryable


class NetworkError(AllerTrackError):
    """Raised on timeouts and transport failures. Always retryable."""

    status = 0
    code = "NETWORK_ERROR"
    retryable = True

    def __init__(self, message: str = "Network error occurred"):
        super().__init__(message)


def is_retryable(error: BaseException) -> bool:
    """Network-classed failures may be retried; 4xx-style errors never are."""
    return isinstance(error, AllerTrackError) and error.retryable


def user_message(error: BaseException) -> str:
    """
    Short human-readable text for a failure.

    Args:
        error: Any exception raised by the access layer or analytics

    Returns:
        Message suitable for display
    """
    if isinstance(error, UnauthenticatedError):
        return "Please sign in to continue"
    if isinstance(error, DataValidationError):
        return error.message
    if isinstance(error, NotFoundError):
        return "The requested item was not found"
    if isinstance(error, NetworkError):
        return "Unable to connect. Please check your internet connection"
    if isinstance(error, StorageUnavailableError):
        return "Storage is temporarily unavailable. Please try again later"
    if isinstance(error, AllerTrackError):
        return error.message
    if str(error):
        return str(error)
    return "An unexpected error occurred"


def log_error(error: BaseException, context: Optional[str] = None) -> None:
    """Log a surfaced failure with its status and code."""
    details: dict = {
        "message": user_message(error),
        "context": context,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if isinstance(error, AllerTrackError):
        details["status"] = error.status
        details["code"] = error.code
    logger.error("Application error: %s", details)


async def safe_call(
    operation: Awaitable[T],
    fallback: Optional[T] = None,
    context: str = "safe_call",
) -> Tuple[Optional[T], Optional[str]]:
    """
    Await an operation and convert failures into a message.

    Returns:
        Tuple of (data, error_message); exactly one of them is meaningful
    """
    try:
        data = await operation
    except AllerTrackError as exc:
        log_error(exc, context)
        return fallback, user_message(exc)
    return data, None


__all__ = [
    "AllerTrackError",
    "UnauthenticatedError",
    "NotFoundError",
    "DataValidationError",
    "StorageUnavailableError",
    "NetworkError",
    "is_retryable",
    "user_message",
    "log_error",
    "safe_call",
]
