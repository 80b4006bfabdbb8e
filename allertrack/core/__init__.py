"""
Core module: Configuration, logging, session context and exception handling.
"""

from .config import Config, config
from .context import SessionContext
from .exceptions import (
    AllerTrackError,
    DataValidationError,
    NetworkError,
    NotFoundError,
    StorageUnavailableError,
    UnauthenticatedError,
    is_retryable,
    log_error,
    safe_call,
    user_message,
)

__all__ = [
    "Config",
    "config",
    "SessionContext",
    "AllerTrackError",
    "DataValidationError",
    "NetworkError",
    "NotFoundError",
    "StorageUnavailableError",
    "UnauthenticatedError",
    "is_retryable",
    "log_error",
    "safe_call",
    "user_message",
]
