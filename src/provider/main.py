"""Main entry point for the Tailscale provider CLI.

Installs structured JSON logging on stderr (stdout carries YAML output),
then hands over to the click command group.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime

from .cli import cli

DEFAULT_LOG_LEVEL = "INFO"

# LogRecord attributes that are not user-supplied ``extra`` fields
_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        # Add extra fields from the record
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str | None = None) -> None:
    """Configure structured logging.

    Args:
        level: Log level name; defaults to TAILSCALE_LOG_LEVEL or INFO.
    """
    level_name = (level or os.environ.get("TAILSCALE_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    # Reduce noise from the HTTP pipeline
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def run() -> None:
    """Entry point for the tsprov console script."""
    setup_logging()
    cli()


if __name__ == "__main__":
    run()
