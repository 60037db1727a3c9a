"""Retry utilities with exponential backoff for transient errors.

Provider calls (transcription, language models) go through
``retry_with_exponential_backoff`` so that 5xx responses, rate limits and
timeouts are retried locally and never reach the orchestrator unless every
attempt fails.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)


def retry_with_exponential_backoff(
    func: Callable[[], Any],
    max_retries: int = 2,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    should_retry: Optional[Callable[[Exception], bool]] = None,
    operation_name: str = "operation",
    log: Optional[logging.Logger] = None,
) -> Any:
    """Retry a function with exponential backoff on transient errors.

    Args:
        func: Function to retry (must be callable with no arguments)
        max_retries: Retries after the first attempt (3 attempts total by default)
        initial_delay: Delay in seconds before the first retry
        max_delay: Maximum delay in seconds between retries
        retryable_exceptions: Exception types that are candidates for retry
        should_retry: Optional predicate narrowing which candidates are retried
                      (e.g. ``is_retryable_error`` to stop on 4xx)
        operation_name: Name used in log messages
        log: Logger to use instead of the module logger

    Returns:
        Result of calling func()

    Raises:
        Exception: The last exception raised by func() if all retries are exhausted,
            or the first non-retryable exception
    """
    log = log or logger
    last_exception: Optional[Exception] = None
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            return func()
        except retryable_exceptions as e:
            if should_retry is not None and not should_retry(e):
                log.debug("%s: non-retryable error: %s", operation_name, e)
                raise
            last_exception = e
            if attempt < max_retries:
                log.warning(
                    "%s: attempt %d/%d failed: %s. Retrying in %.1fs...",
                    operation_name,
                    attempt + 1,
                    max_retries + 1,
                    e,
                    delay,
                )
                time.sleep(delay)
                # Exponential backoff: double the delay, but cap at max_delay
                delay = min(delay * 2, max_delay)
            else:
                log.error(
                    "%s: all %d attempts failed. Last error: %s",
                    operation_name,
                    max_retries + 1,
                    e,
                )

    if last_exception:
        raise last_exception

    raise RuntimeError("Retry logic error: no exception but function failed")
