"""Tests for structured logging behavior."""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
import unittest

from deep_probe.logging_utils import JsonFormatter, configure_logging, event_extra


class JsonFormatterTests(unittest.TestCase):
    """Validate log format and structured fields."""

    def test_json_formatter_includes_structured_fields(self) -> None:
        formatter = JsonFormatter()
        record = logging.LogRecord(
            name="deep_probe.controller",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="controller.state.transition",
            args=(),
            exc_info=None,
        )
        for key, value in event_extra(
            "controller.state.transition", from_state="IDLE", to_state="SENDING"
        ).items():
            setattr(record, key, value)

        data = json.loads(formatter.format(record))
        self.assertEqual(data["event"], "controller.state.transition")
        self.assertEqual(data["from_state"], "IDLE")
        self.assertEqual(data["to_state"], "SENDING")
        self.assertEqual(data["level"], "INFO")
        self.assertEqual(data["logger"], "deep_probe.controller")
        self.assertNotIn("args", data)

    def test_event_extra_puts_event_first(self) -> None:
        extra = event_extra("api.request.retry", attempt=1)
        self.assertEqual(extra, {"event": "api.request.retry", "attempt": 1})


class ConfigureLoggingTests(unittest.TestCase):
    """Validate configure_logging() handler setup behavior."""

    def setUp(self) -> None:
        root = logging.getLogger()
        self._original_level = root.level
        self._original_handlers = list(root.handlers)

    def tearDown(self) -> None:
        root = logging.getLogger()
        for handler in root.handlers:
            if handler not in self._original_handlers:
                handler.close()
        root.setLevel(self._original_level)
        root.handlers.clear()
        root.handlers.extend(self._original_handlers)

    def _stream_handlers(self) -> list[logging.Handler]:
        return [
            h
            for h in logging.getLogger().handlers
            if isinstance(h, logging.StreamHandler)
            and not isinstance(h, logging.FileHandler)
        ]

    def test_structured_uses_json_formatter(self) -> None:
        configure_logging({"level": "DEBUG", "structured": True, "log_to_file": False})
        formatters = [h.formatter for h in logging.getLogger().handlers]
        self.assertTrue(any(isinstance(f, JsonFormatter) for f in formatters))

    def test_plain_formatter_when_not_structured(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False, "log_to_file": False})
        formatters = [h.formatter for h in logging.getLogger().handlers]
        self.assertFalse(any(isinstance(f, JsonFormatter) for f in formatters))

    def test_sets_root_level_and_quiets_http_loggers(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False, "log_to_file": False})
        self.assertEqual(logging.getLogger().level, logging.DEBUG)
        for name in ("httpx", "httpcore"):
            self.assertEqual(logging.getLogger(name).level, logging.WARNING)

    def test_stderr_handler_only_shows_app_warnings(self) -> None:
        configure_logging({"level": "DEBUG", "structured": False, "log_to_file": False})
        handlers = self._stream_handlers()
        self.assertEqual(len(handlers), 1)
        handler = handlers[0]
        self.assertEqual(handler.level, logging.WARNING)
        app_record = logging.LogRecord(
            "deep_probe.app", logging.WARNING, "", 0, "ok", (), None
        )
        other_record = logging.LogRecord(
            "httpx", logging.WARNING, "", 0, "noise", (), None
        )
        self.assertTrue(handler.filter(app_record))
        self.assertFalse(handler.filter(other_record))

    def test_file_handler_created(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log_path = Path(tmp) / "nested" / "test.log"
            configure_logging(
                {
                    "level": "INFO",
                    "structured": True,
                    "log_to_file": True,
                    "log_file_path": str(log_path),
                }
            )
            file_handlers = [
                h
                for h in logging.getLogger().handlers
                if isinstance(h, logging.FileHandler)
            ]
            self.assertEqual(len(file_handlers), 1)
            self.assertTrue(log_path.exists())
            for handler in file_handlers:
                handler.close()
                logging.getLogger().removeHandler(handler)


if __name__ == "__main__":
    unittest.main()
