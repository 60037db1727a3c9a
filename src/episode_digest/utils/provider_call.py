"""Call policy shared by every external provider call.

A ``ProviderCallPolicy`` wraps a zero-argument call in a hard timeout and
retries it with exponential backoff while the error is transient. Each call
also fills a ``ProviderCallMetrics`` record for logging.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, TypeVar

from . import retry
from .retryable_errors import get_retry_reason, is_retryable_error
from .timeout import with_timeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ProviderCallMetrics:
    """Attempts and failure reasons observed for one logical provider call."""

    operation: str
    attempts: int = 0
    retry_reasons: List[str] = field(default_factory=list)
    duration_ms: int = 0
    succeeded: bool = False


@dataclass(frozen=True)
class ProviderCallPolicy:
    """Timeout and retry settings for one provider.

    Attributes:
        timeout_seconds: Hard timeout per attempt (None disables it)
        max_attempts: Total attempts including the first one
        initial_delay: Backoff before the second attempt, doubled afterwards
        max_delay: Backoff cap
    """

    timeout_seconds: Optional[float] = 90
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0

    @classmethod
    def from_config(cls, cfg: Any) -> "ProviderCallPolicy":
        return cls(
            timeout_seconds=cfg.provider_timeout_seconds,
            max_attempts=cfg.provider_max_attempts,
            initial_delay=cfg.retry_initial_delay,
            max_delay=cfg.retry_max_delay,
        )

    def call(
        self,
        func: Callable[[], T],
        operation_name: str,
        log: Optional[logging.Logger] = None,
        metrics: Optional[ProviderCallMetrics] = None,
    ) -> T:
        """Run ``func`` under this policy and return its result.

        Raises:
            The last error once attempts are exhausted, or the first
            non-retryable error (4xx, missing configuration).
        """
        log = log or logger
        metrics = metrics or ProviderCallMetrics(operation=operation_name)
        started = time.monotonic()

        def attempt() -> T:
            metrics.attempts += 1
            try:
                return with_timeout(func, self.timeout_seconds, operation_name)
            except Exception as exc:
                metrics.retry_reasons.append(get_retry_reason(exc))
                raise

        try:
            result = retry.retry_with_exponential_backoff(
                attempt,
                max_retries=max(0, self.max_attempts - 1),
                initial_delay=self.initial_delay,
                max_delay=self.max_delay,
                should_retry=is_retryable_error,
                operation_name=operation_name,
                log=log,
            )
            metrics.succeeded = True
            return result
        finally:
            metrics.duration_ms = int((time.monotonic() - started) * 1000)
            log.debug(
                "%s finished after %d attempt(s)",
                operation_name,
                metrics.attempts,
                extra={
                    "operation": operation_name,
                    "attempts": metrics.attempts,
                    "retry_reasons": metrics.retry_reasons,
                    "duration_ms": metrics.duration_ms,
                    "succeeded": metrics.succeeded,
                },
            )
