"""Retry policies for calls to the hosted backend.

Only network-classed failures are retried, with exponential backoff and a
small fixed attempt count. Not-found, unauthenticated and validation errors
surface immediately.
"""

import logging
from typing import Any, Callable, TypeVar

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .config import BackendConfig
from .exceptions import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def create_custom_retry(
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 8.0,
    multiplier: float = 1,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Create a retry decorator for network-classed failures.

    Args:
        max_attempts: Maximum number of attempts, the first call included
        min_wait: Minimum wait between attempts (seconds)
        max_wait: Maximum wait between attempts (seconds)
        multiplier: Exponential backoff multiplier

    Returns:
        A retry decorator that re-raises the last error when attempts run out

    Example:
        ```python
        lookup_retry = create_custom_retry(max_attempts=5, min_wait=0.5, max_wait=4)

        @lookup_retry
        async def resolve_user():
            ...
        ```
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=multiplier, min=min_wait, max=max_wait),
        retry=retry_if_exception(is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def network_retry(backend: BackendConfig) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Retry decorator configured from backend settings.

    Usage:
        ```python
        send = network_retry(config.backend)(send_once)
        response = await send(request)
        ```
    """
    return create_custom_retry(
        max_attempts=backend.retry_attempts,
        min_wait=backend.retry_min_wait,
        max_wait=backend.retry_max_wait,
    )
