"""Retry helpers for transient control-plane failures.

Only idempotent calls (task status lookups, reads) are retried. Mutating
calls are never wrapped: a retried clone or migrate would start a second task.
"""
import logging
from typing import Callable

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

# Transport-level errors worth another attempt
RETRYABLE_EXCEPTIONS = (
    ConnectionError,
    TimeoutError,
    EOFError,
)


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 10,
    exceptions: tuple = RETRYABLE_EXCEPTIONS,
) -> Callable:
    """Decorator factory retrying with exponential backoff.

    Works for plain functions and coroutine functions alike; the last error
    is re-raised once attempts are exhausted.

    Args:
        max_attempts: Attempts in total, including the first call
        min_wait: Lower bound of the backoff (seconds)
        max_wait: Upper bound of the backoff (seconds)
        exceptions: Exception types that trigger another attempt
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
