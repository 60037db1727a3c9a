"""Timeout utilities for external calls.

Every provider and language-model call runs under ``with_timeout`` so a
misbehaving backend cannot hang a request indefinitely. The worker thread is a
daemon: a timed-out call is abandoned, not killed.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OperationTimeoutError(TimeoutError):
    """Raised when an operation exceeds its timeout."""

    def __init__(self, operation_name: str, timeout_seconds: float) -> None:
        self.operation_name = operation_name
        self.timeout_seconds = timeout_seconds
        super().__init__(f"{operation_name} exceeded timeout of {timeout_seconds} seconds")


def with_timeout(
    func: Callable[..., T],
    timeout_seconds: Optional[float],
    operation_name: str = "operation",
    *args: Any,
    **kwargs: Any,
) -> T:
    """Execute a function with a timeout.

    Args:
        func: Function to execute
        timeout_seconds: Timeout in seconds (None or <= 0 disables timeout)
        operation_name: Name of operation for logging
        *args: Positional arguments to pass to function
        **kwargs: Keyword arguments to pass to function

    Returns:
        Function result

    Raises:
        OperationTimeoutError: If operation exceeds timeout
        Exception: Whatever ``func`` raised

    Example:
        >>> result = with_timeout(client.transcribe, 90, "voxtral transcription", url)
    """
    if timeout_seconds is None or timeout_seconds <= 0:
        return func(*args, **kwargs)

    outcome: dict = {}
    done = threading.Event()

    def target() -> None:
        try:
            outcome["result"] = func(*args, **kwargs)
        except BaseException as e:  # re-raised in the calling thread
            outcome["error"] = e
        finally:
            done.set()

    thread = threading.Thread(target=target, name=f"timeout-{operation_name}", daemon=True)
    thread.start()

    if not done.wait(timeout_seconds):
        logger.warning("Timeout occurred for %s after %s seconds", operation_name, timeout_seconds)
        raise OperationTimeoutError(operation_name, timeout_seconds)

    if "error" in outcome:
        raise outcome["error"]
    return outcome["result"]
