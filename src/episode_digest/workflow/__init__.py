"""Pipeline orchestration: status state machine, task queues and logging setup."""

from .logging_setup import apply_log_level
from .orchestrator import BatchItemResult, SummaryOrchestrator
from .status import best_status, short_error_message, STATUS_PRIORITY
from .task_queue import InlineTaskQueue, TaskQueue

__all__ = [
    "BatchItemResult",
    "InlineTaskQueue",
    "STATUS_PRIORITY",
    "SummaryOrchestrator",
    "TaskQueue",
    "apply_log_level",
    "best_status",
    "short_error_message",
]
