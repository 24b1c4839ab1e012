"""Logging setup for the client: dotted event names, JSON lines, app-only stderr."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
import os
from pathlib import Path
from typing import Any

APP_LOGGER_PREFIX = "deep_probe"
DEFAULT_LOG_FILE = "~/.local/state/deep-probe/app.log"
PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Third-party loggers that are chatty at INFO during every API call.
QUIET_LOGGERS = ("httpx", "httpcore")

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def event_extra(event: str, **fields: Any) -> dict[str, Any]:
    """Build the ``extra`` mapping for a structured log event.

    The event name doubles as the log message, so call sites read as
    ``LOGGER.info("x.y", extra=event_extra("x.y", key=value))``.
    """
    return {"event": event, **fields}


class JsonFormatter(logging.Formatter):
    """Render each record as one compact JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)


class AppOnlyFilter(logging.Filter):
    """Pass records from this package's loggers only."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.name == APP_LOGGER_PREFIX or record.name.startswith(
            APP_LOGGER_PREFIX + "."
        )


def _restrict_permissions(path: Path) -> None:
    if os.name != "posix":
        return
    try:
        path.chmod(0o600)
    except OSError:
        logging.getLogger(__name__).warning("Could not restrict permissions on %s", path)


def _open_log_file(raw_path: str, level: int, formatter: logging.Formatter) -> logging.Handler:
    target = Path(raw_path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(target, encoding="utf-8")
    handler.setFormatter(formatter)
    handler.setLevel(level)
    _restrict_permissions(target)
    return handler


def configure_logging(logging_config: dict[str, Any]) -> None:
    """Install handlers on the root logger from the ``[logging]`` config table.

    Stderr is shared with the terminal UI, so it only receives warnings and
    errors from this package. The optional log file gets everything at the
    configured level.
    """
    level = logging.getLevelName(str(logging_config.get("level", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    formatter: logging.Formatter = (
        JsonFormatter()
        if logging_config.get("structured", True)
        else logging.Formatter(PLAIN_FORMAT)
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console.setLevel(max(level, logging.WARNING))
    console.addFilter(AppOnlyFilter())
    root.addHandler(console)

    if logging_config.get("log_to_file", False):
        root.addHandler(
            _open_log_file(
                str(logging_config.get("log_file_path") or DEFAULT_LOG_FILE),
                level,
                formatter,
            )
        )
