"""Entry point and logging setup for the node pool reconciler.

Logs are structured JSON on stderr so that command output on stdout stays
machine-readable.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

LOG_HANDLER_NAME = "nodepool-json"

# LogRecord attributes that are not user-supplied `extra` fields
_RESERVED_RECORD_ATTRS = frozenset(
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

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str | int = logging.INFO) -> None:
    """Install the JSON handler on the root logger.

    Safe to call more than once; the previous handler is replaced.
    """
    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if existing.get_name() == LOG_HANDLER_NAME:
            root_logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(LOG_HANDLER_NAME)
    handler.setFormatter(JsonFormatter())

    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # Reduce noise from Azure SDK
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def run() -> None:
    """Entry point for the nodepool CLI."""
    from .cli import cli

    cli()


if __name__ == "__main__":
    run()
