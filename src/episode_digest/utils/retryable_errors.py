"""Error classification utilities for retry logic.

Status codes carried by ``ProviderError`` are authoritative. Errors without a
status (SDK exceptions, socket errors) are classified from their type name and
message.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..exceptions import ConfigurationError, ProviderError
from .timeout import OperationTimeoutError

logger = logging.getLogger(__name__)

_RATE_LIMIT_INDICATORS = ("429", "rate limit", "rate_limit", "too many requests", "quota")
_SERVER_ERROR_INDICATORS = (
    "500",
    "502",
    "503",
    "504",
    "internal server error",
    "bad gateway",
    "service unavailable",
    "gateway timeout",
)
_CONNECTION_INDICATORS = (
    "timeout",
    "timed out",
    "connection",
    "network",
    "socket",
    "broken pipe",
)
_CLIENT_ERROR_INDICATORS = (
    "400",
    "401",
    "403",
    "404",
    "422",
    "bad request",
    "unauthorized",
    "forbidden",
    "not found",
    "invalid",
)


def extract_status_code(error: Exception) -> Optional[int]:
    """Return an HTTP status attached to ``error`` by an SDK or ``requests``."""
    status = getattr(error, "status_code", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def is_retryable_error(error: Exception) -> bool:
    """Determine if an error is retryable.

    Retryable: rate limits (429), server errors (5xx), connection errors and
    timeouts. Not retryable: client errors (4xx except 429) and missing
    configuration.

    Args:
        error: Exception to classify

    Returns:
        True if error is retryable, False otherwise
    """
    if isinstance(error, ConfigurationError):
        return False
    if isinstance(error, OperationTimeoutError):
        return True
    if isinstance(error, ProviderError) and error.status_code is not None:
        return error.retryable

    status = extract_status_code(error)
    if status is not None:
        return status == 429 or status >= 500

    error_str = str(error).lower()
    if any(indicator in error_str for indicator in _RATE_LIMIT_INDICATORS):
        return True
    if any(indicator in error_str for indicator in _SERVER_ERROR_INDICATORS):
        return True
    if is_non_retryable_http_error(error):
        return False

    error_type_name = type(error).__name__.lower()
    if any(indicator in error_str for indicator in _CONNECTION_INDICATORS) or any(
        pattern in error_type_name for pattern in ("connection", "timeout", "network")
    ):
        return True

    if isinstance(error, ProviderError):
        return True

    logger.debug("Unknown error type %s, not retrying: %s", type(error).__name__, error)
    return False


def is_non_retryable_http_error(error: Exception) -> bool:
    """Check if error is a non-retryable HTTP error (4xx except 429)."""
    status = extract_status_code(error)
    if status is not None:
        return 400 <= status < 500 and status != 429
    error_str = str(error).lower()
    return any(indicator in error_str for indicator in _CLIENT_ERROR_INDICATORS)


def get_retry_reason(error: Exception) -> str:
    """Get a short reason for a retry (e.g., "429", "503", "timeout")."""
    status = extract_status_code(error)
    if status is not None:
        return str(status)
    error_str = str(error).lower()
    if "rate limit" in error_str:
        return "429"
    if "timeout" in error_str or "timed out" in error_str:
        return "timeout"
    if "connection" in error_str:
        return "connection_error"
    return type(error).__name__
