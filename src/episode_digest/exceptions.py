"""Custom exceptions for episode_digest.

Exception Hierarchy:
    ProviderError (base for external backends)
    └── ConfigurationError - Missing credentials or config values
    ValidationError - Bad input
    └── InvalidTransitionError - Status-guarded operation rejected
    NotFoundError - Missing episode/transcript/summary/notification row
    AgentOutputError - Language model returned unusable structured output
    QuotaExceededError - Per-user request quota exhausted

Timeouts raise ``episode_digest.utils.timeout.OperationTimeoutError``.
"""

from typing import Optional


class ProviderError(Exception):
    """Base exception for failures of an external provider.

    Attributes:
        provider: Name of the provider (e.g., "Voxtral", "Deepgram", "Telegram")
        message: Human-readable error message
        suggestion: Optional suggestion for resolving the error
        status_code: HTTP-equivalent status code when the backend reported one
    """

    def __init__(
        self,
        message: str,
        provider: str = "Unknown",
        suggestion: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.provider = provider
        self.message = message
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message with provider and suggestion."""
        parts = [f"[{self.provider}] {self.message}"]
        if self.suggestion:
            parts.append(f"Suggestion: {self.suggestion}")
        return " ".join(parts)

    @property
    def retryable(self) -> bool:
        """True for 5xx, 429 and failures without a status (network errors)."""
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class ConfigurationError(ProviderError):
    """Raised when a required credential or configuration value is missing.

    Example:
        >>> raise ConfigurationError(
        ...     message="API key not provided",
        ...     provider="Deepgram",
        ...     config_key="deepgram_api_key",
        ...     suggestion="Set DEEPGRAM_API_KEY environment variable"
        ... )
    """

    def __init__(
        self,
        message: str,
        provider: str = "Unknown",
        config_key: Optional[str] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.config_key = config_key
        if config_key and config_key not in message:
            message = f"{message} (config key: {config_key})"
        super().__init__(message=message, provider=provider, suggestion=suggestion)

    @property
    def retryable(self) -> bool:
        return False


class ValidationError(ValueError):
    """Raised for bad input such as a missing audio reference or unknown level."""


class InvalidTransitionError(ValidationError):
    """Raised when a status-guarded operation is called in the wrong status.

    Attributes:
        entity: Kind of row (e.g., "notification")
        entity_id: Row identifier
        current_status: Status found on the row
        required_status: Status the operation requires
    """

    def __init__(
        self,
        entity: str,
        entity_id: object,
        current_status: str,
        required_status: str,
        operation: str = "operation",
    ) -> None:
        self.entity = entity
        self.entity_id = entity_id
        self.current_status = current_status
        self.required_status = required_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {entity} {entity_id}: status is '{current_status}', "
            f"only '{required_status}' is allowed"
        )


class NotFoundError(LookupError):
    """Raised when an episode, transcript, summary or notification row is missing."""

    def __init__(self, entity: str, key: object) -> None:
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


class AgentOutputError(Exception):
    """Raised when a summarization stage cannot use the model output.

    The raw excerpt is kept for logs; it never reaches the stored error message.
    """

    RAW_EXCERPT_LENGTH = 300

    def __init__(self, stage: str, message: str, raw_text: Optional[str] = None) -> None:
        self.stage = stage
        self.reason = message
        self.raw_excerpt = raw_text[: self.RAW_EXCERPT_LENGTH] if raw_text else None
        super().__init__(f"{stage} failed: {message}")


class QuotaExceededError(Exception):
    """Raised when a caller exhausted its request quota for the current window."""

    def __init__(self, identifier: str, limit: int, window_seconds: int) -> None:
        self.identifier = identifier
        self.limit = limit
        self.window_seconds = window_seconds
        super().__init__(
            f"Quota exceeded for {identifier}: {limit} requests per {window_seconds}s"
        )
