from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from . import config_constants
from .exceptions import ConfigurationError


# SKIP .env loading in test environments - tests should use Config objects and
# environment variables directly, never rely on .env files
def _is_test_environment() -> bool:
    """Check if we're running in a test environment."""
    if "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ:
        return True
    if os.environ.get("TESTING", "").lower() in ("1", "true", "yes"):
        return True
    return False


if not _is_test_environment():
    try:
        load_dotenv(override=False)
    except (PermissionError, OSError):
        # Continue without .env file
        pass

DEFAULT_LOG_LEVEL = config_constants.DEFAULT_LOG_LEVEL
VALID_LOG_LEVELS = config_constants.VALID_LOG_LEVELS

# Config field -> environment variable for credentials
_SECRET_ENV_VARS: Dict[str, str] = {
    "mistral_api_key": "MISTRAL_API_KEY",
    "deepgram_api_key": "DEEPGRAM_API_KEY",
    "anthropic_api_key": "ANTHROPIC_API_KEY",
    "resend_api_key": "RESEND_API_KEY",
    "telegram_bot_token": "TELEGRAM_BOT_TOKEN",
}


def _env_or_value(value: Any, env_name: str) -> Optional[str]:
    """Return the explicit value when given, else the stripped env var, else None."""
    if value is not None:
        return str(value).strip() or None
    env_value = os.getenv(env_name)
    if env_value:
        return env_value.strip() or None
    return None


class Config(BaseModel):
    """Configuration model for the episode processing pipeline.

    Configuration can be created programmatically or loaded from JSON/YAML files
    using `load_config_file()`. Credentials fall back to environment variables
    (loaded from `.env` by python-dotenv outside of tests). The model is frozen
    after creation.

    Categories:

    - **Logging**: log level, log file, JSON logs
    - **Storage**: SQLAlchemy database URL
    - **Providers**: API keys, model names, per-call timeout and retry policy
    - **Summaries**: writer concurrency, transcript truncation
    - **Notifications**: sender address, public app URL, worker count
    - **Quota**: per-user sliding-window request limits

    Credentials are validated lazily: constructing a provider or sender without
    its key raises `ConfigurationError` (see `require()`), so a deployment that
    never sends Telegram messages needs no bot token.

    Example:
        >>> from episode_digest import Config
        >>> cfg = Config(database_url="sqlite:///digest.db", writer_concurrency=2)
    """

    # Logging
    log_level: str = Field(default=DEFAULT_LOG_LEVEL, alias="log_level")
    log_file: Optional[str] = Field(default=None, alias="log_file")
    json_logs: bool = Field(default=False, alias="json_logs")

    # Storage and links
    database_url: str = Field(default=config_constants.DEFAULT_DATABASE_URL, alias="database_url")
    app_url: str = Field(default=config_constants.DEFAULT_APP_URL, alias="app_url")
    default_language: str = Field(default=config_constants.DEFAULT_LANGUAGE, alias="language")

    # Credentials
    mistral_api_key: Optional[str] = Field(default=None, alias="mistral_api_key")
    deepgram_api_key: Optional[str] = Field(default=None, alias="deepgram_api_key")
    anthropic_api_key: Optional[str] = Field(default=None, alias="anthropic_api_key")
    resend_api_key: Optional[str] = Field(default=None, alias="resend_api_key")
    telegram_bot_token: Optional[str] = Field(default=None, alias="telegram_bot_token")

    # Transcription
    voxtral_model: str = Field(default=config_constants.DEFAULT_VOXTRAL_MODEL)
    deepgram_model: str = Field(default=config_constants.DEFAULT_DEEPGRAM_MODEL)
    deepgram_api_base: str = Field(default=config_constants.DEFAULT_DEEPGRAM_API_BASE)
    captions_api_base: str = Field(default=config_constants.DEFAULT_CAPTIONS_API_BASE)

    # Language models
    agent_model: str = Field(default=config_constants.DEFAULT_AGENT_MODEL)
    quick_model: str = Field(default=config_constants.DEFAULT_QUICK_MODEL)
    insights_model: str = Field(default=config_constants.DEFAULT_INSIGHTS_MODEL)
    agent_temperature: float = Field(default=config_constants.DEFAULT_AGENT_TEMPERATURE)

    # Provider call discipline
    provider_timeout_seconds: int = Field(
        default=config_constants.DEFAULT_PROVIDER_TIMEOUT_SECONDS, alias="timeout"
    )
    provider_max_attempts: int = Field(default=config_constants.DEFAULT_PROVIDER_MAX_ATTEMPTS)
    retry_initial_delay: float = Field(default=config_constants.DEFAULT_RETRY_INITIAL_DELAY)
    retry_max_delay: float = Field(default=config_constants.DEFAULT_RETRY_MAX_DELAY)

    # Summaries
    writer_concurrency: int = Field(default=config_constants.DEFAULT_WRITER_CONCURRENCY)
    transcript_char_limit: int = Field(default=config_constants.DEFAULT_TRANSCRIPT_CHAR_LIMIT)

    # Notifications
    email_from: str = Field(default=config_constants.DEFAULT_EMAIL_FROM)
    telegram_api_base: str = Field(default=config_constants.DEFAULT_TELEGRAM_API_BASE)
    notification_workers: int = Field(default=config_constants.DEFAULT_NOTIFICATION_WORKERS)

    # Quota
    quota_max_requests: int = Field(default=config_constants.DEFAULT_QUOTA_MAX_REQUESTS)
    quota_window_seconds: int = Field(default=config_constants.DEFAULT_QUOTA_WINDOW_SECONDS)

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        """Normalize log level value."""
        if value is None:
            return DEFAULT_LOG_LEVEL
        return str(value).strip().upper() or DEFAULT_LOG_LEVEL

    @field_validator("log_level", mode="after")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        """Validate log level is one of the valid levels."""
        if value not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}, got: {value}")
        return value

    @model_validator(mode="before")
    @classmethod
    def _preprocess_config_data(cls, data: Any) -> Any:
        """Fill unset values from environment variables before validation.

        LOG_LEVEL takes precedence over config; every other variable is only used
        when the config leaves the field unset.
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)

        env_log_level = os.getenv("LOG_LEVEL", "").strip().upper()
        if env_log_level in VALID_LOG_LEVELS:
            data["log_level"] = env_log_level

        env_fields = dict(_SECRET_ENV_VARS)
        env_fields.update(
            {"log_file": "LOG_FILE", "database_url": "DATABASE_URL", "app_url": "APP_URL"}
        )
        for field_name, env_name in env_fields.items():
            data[field_name] = _env_or_value(data.get(field_name), env_name)
            if data[field_name] is None:
                del data[field_name]
        return data

    @field_validator("app_url", mode="after")
    @classmethod
    def _strip_app_url(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("default_language", mode="before")
    @classmethod
    def _normalize_language(cls, value: Any) -> str:
        text = str(value or "").strip().lower()
        return text or config_constants.DEFAULT_LANGUAGE

    @field_validator("provider_timeout_seconds", mode="before")
    @classmethod
    def _ensure_timeout(cls, value: Any) -> int:
        if value is None or value == "":
            return config_constants.DEFAULT_PROVIDER_TIMEOUT_SECONDS
        try:
            timeout = int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError("timeout must be an integer") from exc
        return max(config_constants.MIN_PROVIDER_TIMEOUT_SECONDS, timeout)

    @field_validator(
        "provider_max_attempts",
        "writer_concurrency",
        "notification_workers",
        "quota_max_requests",
        "quota_window_seconds",
        "transcript_char_limit",
    )
    @classmethod
    def _ensure_positive(cls, value: int, info: Any) -> int:
        if value < 1:
            raise ValueError(f"{info.field_name} must be at least 1, got: {value}")
        return value

    @field_validator("retry_initial_delay", "retry_max_delay")
    @classmethod
    def _ensure_non_negative_delay(cls, value: float, info: Any) -> float:
        if value < 0:
            raise ValueError(f"{info.field_name} must be >= 0, got: {value}")
        return value

    def require(self, field_name: str, provider: str) -> str:
        """Return a credential value or raise ConfigurationError if it is missing."""
        value = getattr(self, field_name)
        if not value:
            env_name = _SECRET_ENV_VARS.get(field_name, field_name.upper())
            raise ConfigurationError(
                message=f"{provider} credentials not configured",
                provider=provider,
                config_key=field_name,
                suggestion=f"Set {env_name} environment variable or {field_name} in config",
            )
        return str(value)


def load_config_file(path: str) -> Dict[str, Any]:
    """Load configuration from a JSON or YAML file.

    The file format is auto-detected from the extension (`.json`, `.yaml`, `.yml`).
    The returned dictionary can be unpacked into the `Config` constructor.

    Args:
        path: Path to configuration file. Supports tilde expansion.

    Returns:
        Dictionary of configuration values.

    Raises:
        ValueError: If the path is empty, missing, unreadable, of an unsupported
            type, fails to parse, or does not hold a mapping at the top level.

    Example:
        >>> cfg = Config(**load_config_file("config.yaml"))

    Note:
        Configuration files should not contain API keys; use environment variables.
    """
    if not path:
        raise ValueError("Config path cannot be empty")

    cfg_path = Path(path).expanduser()
    try:
        resolved = cfg_path.resolve()
    except (OSError, RuntimeError) as exc:
        raise ValueError(f"Invalid config path: {path} ({exc})") from exc

    if not resolved.exists():
        raise ValueError(f"Config file not found: {resolved}")

    suffix = resolved.suffix.lower()
    try:
        text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Failed to read config file {resolved}: {exc}") from exc

    if suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON config file {resolved}: {exc}") from exc
    elif suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML config file {resolved}: {exc}") from exc
    else:
        raise ValueError(f"Unsupported config file type: {resolved.suffix}")

    if not isinstance(data, dict):
        raise ValueError("Config file must contain a mapping/object at the top level")

    return data
