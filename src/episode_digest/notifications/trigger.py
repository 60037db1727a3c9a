"""Completion-triggered notification fan-out.

Runs when a summary becomes ready: every pending scheduled request for the
episode is sent independently. Each status write is conditional on the row
still being ``pending``, so a concurrent admin action or a second trigger
cannot produce a double send record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from ..storage import NotificationRecord, NotificationRepository
from ..workflow.status import short_error_message
from .content import ShareContent, ShareContentBuilder
from .senders import NotificationSender, select_sender, SendResult

logger = logging.getLogger(__name__)


@dataclass
class TriggerReport:
    episode_id: str
    pending: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    content_error: Optional[str] = None


def dispatch(
    senders: Mapping[str, NotificationSender],
    notification: NotificationRecord,
    content: ShareContent,
) -> SendResult:
    """Send one notification; unknown channels and sender crashes become failures."""
    sender = select_sender(senders, notification.channel)
    if sender is None:
        return SendResult.failed(f"Unknown channel: {notification.channel}")
    try:
        return sender.send(notification.recipient, content)
    except Exception as exc:
        return SendResult.failed(short_error_message(exc))


class NotificationTrigger:
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

    def trigger_pending_notifications(self, episode_id: str) -> TriggerReport:
        report = TriggerReport(episode_id=episode_id)
        pending = self.notifications.list_pending_scheduled(episode_id)
        report.pending = len(pending)
        if not pending:
            self.log.info("No pending notifications", extra={"episode": episode_id})
            return report

        self.log.info(
            "Processing %d pending notifications", len(pending), extra={"episode": episode_id}
        )
        try:
            content = self.content_builder.build(episode_id)
        except Exception as exc:
            message = short_error_message(exc)
            report.content_error = message
            report.failed = self.notifications.fail_all_pending(episode_id, message)
            self.log.error(
                "Failed to build share content, marked %d notifications failed: %s",
                report.failed,
                message,
                extra={"episode": episode_id},
            )
            return report

        for notification in pending:
            result = dispatch(self.senders, notification, content)
            if result.success:
                updated = self.notifications.mark_sent(notification.id)
            else:
                updated = self.notifications.mark_failed(
                    notification.id, result.error or "Unknown error"
                )
            if not updated:
                report.skipped += 1
                self.log.info("Notification %s no longer pending; skipped", notification.id)
            elif result.success:
                report.sent += 1
                self.log.info(
                    "Notification %s sent via %s", notification.id, notification.channel
                )
            else:
                report.failed += 1
                self.log.warning(
                    "Notification %s via %s failed: %s",
                    notification.id,
                    notification.channel,
                    result.error,
                )

        self.log.info(
            "Finished notifications: %d sent, %d failed",
            report.sent,
            report.failed,
            extra={"episode": episode_id},
        )
        return report
