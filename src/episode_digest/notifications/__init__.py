"""Notification fan-out, channel senders and admin operations."""

from .admin import NotificationAdmin
from .content import ShareContent, ShareContentBuilder
from .formatting import escape_markdown_v2, format_telegram_message
from .senders import (
    create_senders,
    EmailSender,
    NotificationSender,
    select_sender,
    SendResult,
    TelegramSender,
)
from .trigger import NotificationTrigger, TriggerReport

__all__ = [
    "EmailSender",
    "NotificationAdmin",
    "NotificationSender",
    "NotificationTrigger",
    "SendResult",
    "ShareContent",
    "ShareContentBuilder",
    "TelegramSender",
    "TriggerReport",
    "create_senders",
    "escape_markdown_v2",
    "format_telegram_message",
    "select_sender",
]
