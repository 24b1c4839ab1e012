"""Tests for domain exception hierarchy."""

from __future__ import annotations

import unittest

from deep_probe.exceptions import (
    ConfigValidationError,
    ConversationBusyError,
    DeepProbeError,
    ProbeConnectionError,
    ProbeRequestError,
    ProbeResponseError,
    ProbeStreamingError,
    ToolRegistryError,
)


class ExceptionHierarchyTests(unittest.TestCase):
    """Validate exception inheritance contract."""

    def test_exception_hierarchy(self) -> None:
        for exc_type in (
            ProbeConnectionError,
            ProbeRequestError,
            ProbeResponseError,
            ProbeStreamingError,
            ToolRegistryError,
            ConfigValidationError,
            ConversationBusyError,
        ):
            with self.subTest(exc_type=exc_type.__name__):
                self.assertTrue(issubclass(exc_type, DeepProbeError))
        self.assertTrue(issubclass(DeepProbeError, RuntimeError))

    def test_request_error_carries_status_code(self) -> None:
        exc = ProbeRequestError("HTTP 503", status_code=503)
        self.assertEqual(exc.status_code, 503)
        self.assertEqual(str(exc), "HTTP 503")
        self.assertEqual(ProbeRequestError("x").status_code, 0)


if __name__ == "__main__":
    unittest.main()
