"""Summary status rules shared by the orchestrator and status reads."""

from __future__ import annotations

from typing import Iterable, Optional

from ..config_constants import MAX_ERROR_MESSAGE_LENGTH

IN_FLIGHT_STATUSES = ("queued", "transcribing", "summarizing")
STARTABLE_STATUSES = ("not_ready", "failed")
TERMINAL_STATUSES = ("ready", "failed")

STATUS_PRIORITY = {
    "ready": 6,
    "summarizing": 5,
    "transcribing": 4,
    "queued": 3,
    "failed": 2,
    "not_ready": 1,
}


def is_in_flight(status: Optional[str]) -> bool:
    return status in IN_FLIGHT_STATUSES


def startable_statuses(force: bool = False) -> tuple:
    """Statuses from which a run may start; ``force`` also re-queues ``ready``."""
    return STARTABLE_STATUSES + ("ready",) if force else STARTABLE_STATUSES


def best_status(statuses: Iterable[Optional[str]]) -> str:
    """Highest-priority status; unknown or missing values count as ``not_ready``."""
    best = "not_ready"
    for status in statuses:
        if status and STATUS_PRIORITY.get(status, 0) > STATUS_PRIORITY[best]:
            best = status
    return best


def short_error_message(error: BaseException, limit: int = MAX_ERROR_MESSAGE_LENGTH) -> str:
    """One-line, bounded, human-readable description of ``error`` for storage."""
    text = " ".join(str(error).split()) or type(error).__name__
    if len(text) > limit:
        text = text[: limit - 3].rstrip() + "..."
    return text
