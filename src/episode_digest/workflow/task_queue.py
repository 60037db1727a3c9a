"""Background task queues for work that outlives the request.

``TaskQueue`` runs tasks on a ``ThreadPoolExecutor``; a failing task is
logged and never propagates to the submitter. ``InlineTaskQueue`` runs tasks
immediately in the calling thread with the same isolation, for tooling and
tests.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, List, Optional

from ..config_constants import DEFAULT_NOTIFICATION_WORKERS

logger = logging.getLogger(__name__)


class TaskQueue:
    def __init__(
        self,
        max_workers: int = DEFAULT_NOTIFICATION_WORKERS,
        name: str = "tasks",
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.name = name
        self.log = log or logger
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._futures: List[Future] = []
        self._lock = threading.Lock()
        self._closed = False

    def _run(self, task_name: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except Exception:
            self.log.exception("Task %s failed", task_name)
            return None

    def submit(
        self, func: Callable[..., Any], *args: Any, task_name: Optional[str] = None, **kwargs: Any
    ) -> Future:
        label = task_name or getattr(func, "__name__", "task")
        with self._lock:
            if self._closed:
                raise RuntimeError(f"Task queue {self.name} is shut down")
            future = self.executor.submit(self._run, label, func, *args, **kwargs)
            self._futures = [f for f in self._futures if not f.done()]
            self._futures.append(future)
        self.log.debug("Task %s submitted to %s", label, self.name)
        return future

    def wait_all(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted task finished; False on timeout."""
        with self._lock:
            pending = list(self._futures)
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait_for_tasks: bool = True) -> None:
        with self._lock:
            self._closed = True
        self.executor.shutdown(wait=wait_for_tasks)
        self.log.info("Task queue %s stopped", self.name)


class InlineTaskQueue:
    """Runs each task synchronously at submit time."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self.log = log or logger
        self.completed: int = 0

    def submit(
        self, func: Callable[..., Any], *args: Any, task_name: Optional[str] = None, **kwargs: Any
    ) -> Future:
        label = task_name or getattr(func, "__name__", "task")
        future: Future = Future()
        try:
            future.set_result(func(*args, **kwargs))
        except Exception as exc:
            self.log.exception("Task %s failed", label)
            future.set_exception(exc)
        self.completed += 1
        return future

    def wait_all(self, timeout: Optional[float] = None) -> bool:
        return True

    def shutdown(self, wait_for_tasks: bool = True) -> None:
        return None
