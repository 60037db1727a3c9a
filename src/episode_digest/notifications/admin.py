"""Guarded administrative operations on notification requests."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from ..exceptions import InvalidTransitionError, NotFoundError
from ..storage import NotificationRecord, NotificationRepository
from ..workflow.status import short_error_message
from .content import ShareContent, ShareContentBuilder
from .senders import NotificationSender, SendResult
from .trigger import dispatch

logger = logging.getLogger(__name__)


class NotificationAdmin:
    """``cancel``, ``force_send`` and ``resend`` with status preconditions.

    A wrong current status raises ``InvalidTransitionError`` and changes
    nothing; the final writes are conditional on the status read here.
    """

    def __init__(
        self,
        notifications: NotificationRepository,
        content_builder: ShareContentBuilder,
        senders: Mapping[str, NotificationSender],
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.notifications = notifications
        self.content_builder = content_builder
        self.senders = senders
        self.log = log or logger

    def _load(self, notification_id: int, required: str, operation: str) -> NotificationRecord:
        record = self.notifications.get(notification_id)
        if record is None:
            raise NotFoundError("notification", notification_id)
        if record.status != required:
            raise InvalidTransitionError(
                "notification", notification_id, record.status, required, operation=operation
            )
        return record

    def _guard_lost(self, notification_id: int, required: str, operation: str) -> None:
        latest = self.notifications.get(notification_id)
        raise InvalidTransitionError(
            "notification",
            notification_id,
            latest.status if latest else "missing",
            required,
            operation=operation,
        )

    def _content(self, episode_id: str) -> ShareContent:
        try:
            return self.content_builder.build(episode_id)
        except Exception as exc:
            self.log.info("Using minimal share content for %s: %s", episode_id, exc)
            return self.content_builder.build_minimal(episode_id)

    def cancel(self, notification_id: int) -> NotificationRecord:
        self._load(notification_id, "pending", "cancel")
        if not self.notifications.transition(notification_id, "pending", status="cancelled"):
            self._guard_lost(notification_id, "pending", "cancel")
        self.log.info("Notification %s cancelled", notification_id)
        return self.notifications.get(notification_id)  # type: ignore[return-value]

    def force_send(self, notification_id: int) -> SendResult:
        record = self._load(notification_id, "pending", "force_send")
        return self._send_and_record(record, "pending", "force_send")

    def resend(self, notification_id: int) -> SendResult:
        record = self._load(notification_id, "failed", "resend")
        return self._send_and_record(record, "failed", "resend")

    def _send_and_record(
        self, record: NotificationRecord, from_status: str, operation: str
    ) -> SendResult:
        try:
            content = self._content(record.episode_id)
        except Exception as exc:
            result = SendResult.failed(short_error_message(exc))
        else:
            result = dispatch(self.senders, record, content)

        if result.success:
            updated = self.notifications.mark_sent(record.id, from_status=from_status)
        else:
            updated = self.notifications.mark_failed(
                record.id, result.error or "Unknown error", from_status=from_status
            )
        if not updated:
            self._guard_lost(record.id, from_status, operation)
        self.log.info(
            "Notification %s %s: %s",
            record.id,
            operation,
            "sent" if result.success else f"failed ({result.error})",
        )
        return result
