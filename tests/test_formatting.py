"""Tests for timestamp and label formatting helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import unittest

from deep_probe.formatting import (
    format_relative_time,
    format_timestamp,
    parse_timestamp,
    truncate_text,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FormattingTests(unittest.TestCase):
    def test_parse_timestamp_treats_naive_values_as_utc(self) -> None:
        parsed = parse_timestamp("2026-03-10T11:30:00")
        assert parsed is not None
        self.assertEqual(parsed.tzinfo, timezone.utc)
        self.assertIsNone(parse_timestamp(""))
        self.assertIsNone(parse_timestamp("yesterday"))

    def test_format_timestamp(self) -> None:
        self.assertEqual(format_timestamp("2026-03-10T09:05:00+00:00", tz=timezone.utc), "09:05")
        self.assertEqual(
            format_timestamp("2026-03-10T09:05:00+00:00", tz=timezone(timedelta(hours=2))),
            "11:05",
        )
        self.assertEqual(format_timestamp("garbage"), "Now")

    def test_format_relative_time_buckets(self) -> None:
        cases = {
            (NOW - timedelta(seconds=20)).isoformat(): "Just now",
            (NOW - timedelta(minutes=5)).isoformat(): "5m ago",
            (NOW - timedelta(hours=3, minutes=10)).isoformat(): "3h ago",
            (NOW - timedelta(days=3)).isoformat(): "2026-03-07",
            "": "Unknown",
        }
        for value, expected in cases.items():
            with self.subTest(value=value):
                self.assertEqual(format_relative_time(value, now=NOW), expected)

    def test_truncate_text(self) -> None:
        self.assertEqual(truncate_text("short"), "short")
        self.assertEqual(truncate_text("abcdefghij", 4), "abcd...")


if __name__ == "__main__":
    unittest.main()
