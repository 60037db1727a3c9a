"""Notification channel senders.

Senders never raise for delivery problems: every outcome is a ``SendResult``
so one recipient's failure stays local to its own notification row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

import requests
import resend

from .. import config
from ..config_constants import TELEGRAM_TIMEOUT_SECONDS
from ..exceptions import ConfigurationError
from .content import ShareContent
from .formatting import email_subject, format_email_html, format_email_text, format_telegram_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendResult:
    success: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "SendResult":
        return cls(success=True)

    @classmethod
    def failed(cls, error: str) -> "SendResult":
        return cls(success=False, error=error or "Unknown error")


@runtime_checkable
class NotificationSender(Protocol):
    channel: str

    def send(self, recipient: str, content: ShareContent) -> SendResult:
        ...


class EmailSender:
    """Summary-ready email through the Resend API."""

    channel = "email"

    def __init__(
        self,
        cfg: config.Config,
        emails: Optional[Any] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.cfg = cfg
        self.from_address = cfg.email_from
        self._emails = emails
        self.log = log or logger

    def _client(self) -> Any:
        if self._emails is None:
            resend.api_key = self.cfg.require("resend_api_key", "Resend")
            self._emails = resend.Emails
        return self._emails

    def send(self, recipient: str, content: ShareContent) -> SendResult:
        try:
            emails = self._client()
        except ConfigurationError as exc:
            return SendResult.failed(str(exc))
        params: Dict[str, Any] = {
            "from": self.from_address,
            "to": [recipient],
            "subject": email_subject(content),
            "html": format_email_html(content),
            "text": format_email_text(content),
        }
        try:
            result = emails.send(params)
        except Exception as exc:
            self.log.warning("Email send failed: %s", exc)
            return SendResult.failed(str(exc) or "Email send failed")
        email_id = result.get("id") if isinstance(result, Mapping) else getattr(result, "id", None)
        self.log.debug("Email sent: %s", email_id)
        return SendResult.ok()


class TelegramSender:
    """Bot API ``sendMessage`` with MarkdownV2 formatting."""

    channel = "telegram"

    def __init__(
        self,
        cfg: config.Config,
        session: Optional[requests.Session] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.bot_token = cfg.telegram_bot_token
        self.api_base = cfg.telegram_api_base.rstrip("/")
        self.session = session or requests.Session()
        self.log = log or logger

    def send(self, recipient: str, content: ShareContent) -> SendResult:
        if not self.bot_token:
            return SendResult.failed("TELEGRAM_BOT_TOKEN not configured")
        url = f"{self.api_base}/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": recipient,
            "text": format_telegram_message(content),
            "parse_mode": "MarkdownV2",
            "disable_web_page_preview": False,
        }
        try:
            response = self.session.post(url, json=payload, timeout=TELEGRAM_TIMEOUT_SECONDS)
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            self.log.warning("Telegram send failed: %s", exc)
            return SendResult.failed(str(exc) or "Telegram send failed")
        if not isinstance(data, Mapping) or not data.get("ok"):
            description = data.get("description") if isinstance(data, Mapping) else None
            return SendResult.failed(description or "Telegram API error")
        return SendResult.ok()


def select_sender(
    senders: Mapping[str, NotificationSender], channel: str
) -> Optional[NotificationSender]:
    """Sender registered for ``channel``, or None for unknown channels."""
    return senders.get(channel)


def create_senders(cfg: config.Config, log: Optional[logging.Logger] = None) -> Dict[str, NotificationSender]:
    return {
        "email": EmailSender(cfg, log=log),
        "telegram": TelegramSender(cfg, log=log),
    }
