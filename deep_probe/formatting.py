"""Human-friendly rendering of server timestamps and long labels."""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    text = value.strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: str, tz: tzinfo | None = None) -> str:
    """Return ``HH:MM`` in local time (or ``tz``), ``Now`` when unparseable."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return "Now"
    return parsed.astimezone(tz).strftime("%H:%M")


def format_relative_time(value: str, now: datetime | None = None) -> str:
    """Describe how long ago ``value`` was, e.g. ``5m ago``."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return "Unknown"
    reference = now or datetime.now(timezone.utc)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    minutes = int((reference - parsed).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if minutes < 1440:
        return f"{minutes // 60}h ago"
    return parsed.astimezone(reference.tzinfo).strftime("%Y-%m-%d")


def truncate_text(text: str, max_length: int = 50) -> str:
    if len(text) > max_length:
        return f"{text[:max_length]}..."
    return text
