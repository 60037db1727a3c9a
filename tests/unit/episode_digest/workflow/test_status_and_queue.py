"""Unit tests for status rules and the background task queues."""

from __future__ import annotations

import threading
import unittest

import pytest

from episode_digest.exceptions import ProviderError
from episode_digest.workflow import best_status, InlineTaskQueue, short_error_message, TaskQueue
from episode_digest.workflow.status import is_in_flight, startable_statuses


@pytest.mark.unit
class TestStatusRules:
    def test_best_status_priority(self):
        assert best_status(["failed", "queued"]) == "queued"
        assert best_status(["summarizing", "ready", "transcribing"]) == "ready"
        assert best_status(["failed", None]) == "failed"

    def test_best_status_of_nothing(self):
        assert best_status([]) == "not_ready"
        assert best_status([None, "bogus"]) == "not_ready"

    def test_startable_statuses(self):
        assert "ready" not in startable_statuses()
        assert set(startable_statuses(force=True)) == {"not_ready", "failed", "ready"}
        assert not any(is_in_flight(s) for s in startable_statuses(force=True))

    def test_short_error_message_is_single_line(self):
        error = ProviderError("bad\n  gateway", provider="Deepgram", status_code=502)
        assert short_error_message(error) == "[Deepgram] bad gateway"

    def test_short_error_message_truncates(self):
        message = short_error_message(RuntimeError("word " * 100), limit=20)
        assert len(message) <= 20
        assert message.endswith("...")

    def test_empty_error_uses_type_name(self):
        assert short_error_message(TimeoutError()) == "TimeoutError"


class TestTaskQueue(unittest.TestCase):
    def setUp(self):
        self.queue = TaskQueue(max_workers=2, name="test-tasks")

    def tearDown(self):
        self.queue.shutdown()

    def test_runs_tasks_and_waits(self):
        results = []
        lock = threading.Lock()

        def record(value):
            with lock:
                results.append(value)

        for value in range(5):
            self.queue.submit(record, value)
        self.assertTrue(self.queue.wait_all(timeout=5))
        self.assertEqual(sorted(results), [0, 1, 2, 3, 4])

    def test_failing_task_is_isolated(self):
        def boom():
            raise RuntimeError("task failed")

        failing = self.queue.submit(boom, task_name="boom")
        ok = self.queue.submit(lambda: "done")
        self.assertTrue(self.queue.wait_all(timeout=5))
        self.assertIsNone(failing.result())
        self.assertEqual(ok.result(), "done")

    def test_wait_all_times_out(self):
        gate = threading.Event()
        self.queue.submit(gate.wait, 5)
        self.assertFalse(self.queue.wait_all(timeout=0.05))
        gate.set()
        self.assertTrue(self.queue.wait_all(timeout=5))

    def test_submit_after_shutdown(self):
        self.queue.shutdown()
        with self.assertRaises(RuntimeError):
            self.queue.submit(lambda: None)


@pytest.mark.unit
class TestInlineTaskQueue:
    def test_runs_immediately(self):
        queue = InlineTaskQueue()
        future = queue.submit(lambda a, b: a + b, 2, 3)
        assert future.result() == 5
        assert queue.completed == 1
        assert queue.wait_all()

    def test_failure_is_kept_on_future(self):
        queue = InlineTaskQueue()

        def boom():
            raise ValueError("nope")

        future = queue.submit(boom, task_name="boom")
        assert isinstance(future.exception(), ValueError)
