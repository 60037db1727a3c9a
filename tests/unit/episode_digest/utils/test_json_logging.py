"""Unit tests for JSON log formatting and root logger setup."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from episode_digest.utils.json_logging import JSONFormatter
from episode_digest.workflow import apply_log_level


@pytest.mark.unit
class TestJSONFormatter:
    def test_extra_fields_become_keys(self):
        record = logging.LogRecord("episode_digest.test", logging.INFO, __file__, 1, "Run %s", ("ok",), None)
        record.episode = "ep-1"
        record.summary_level = "deep"

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "Run ok"
        assert payload["level"] == "INFO"
        assert payload["episode"] == "ep-1"
        assert payload["summary_level"] == "deep"
        assert "args" not in payload

    def test_exception_included(self):
        try:
            raise ValueError("bad input")
        except ValueError:
            record = logging.LogRecord(
                "x", logging.ERROR, __file__, 1, "failed", (), exc_info=sys.exc_info()
            )
        payload = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad input" in payload["exc_info"]


@pytest.fixture
def clean_root_logger():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    root.handlers = []
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers = saved_handlers
    root.setLevel(saved_level)


@pytest.mark.unit
class TestApplyLogLevel:
    def test_invalid_level(self, clean_root_logger):
        with pytest.raises(ValueError, match="Invalid log level"):
            apply_log_level("LOUD")

    def test_console_and_file_handlers(self, clean_root_logger, tmp_path):
        log_file = tmp_path / "logs" / "digest.log"
        apply_log_level("debug", str(log_file), json_logs=True)
        apply_log_level("debug", str(log_file), json_logs=True)

        assert clean_root_logger.level == logging.DEBUG
        file_handlers = [h for h in clean_root_logger.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert all(isinstance(h.formatter, JSONFormatter) for h in clean_root_logger.handlers)
        assert log_file.parent.is_dir()
