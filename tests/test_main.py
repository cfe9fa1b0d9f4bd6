"""Tests for structured logging setup."""

import json
import logging
import sys
from collections.abc import Iterator

import pytest

from nodepool.main import LOG_HANDLER_NAME, JsonFormatter, setup_logging


@pytest.fixture
def root_logger() -> Iterator[logging.Logger]:
    logger = logging.getLogger()
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def _record(self, **extra: object) -> logging.LogRecord:
        record = logging.LogRecord(
            name="nodepool.reconciler",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Submitted %s",
            args=("create",),
            exc_info=None,
        )
        record.__dict__.update(extra)
        return record

    def test_core_fields(self) -> None:
        data = json.loads(JsonFormatter().format(self._record()))

        assert data["level"] == "INFO"
        assert data["message"] == "Submitted create"
        assert data["logger"] == "nodepool.reconciler"
        assert data["timestamp"].endswith("Z")

    def test_extra_fields_are_included(self) -> None:
        record = self._record(pool_id="/subscriptions/x", changed_fields=["tags"])

        data = json.loads(JsonFormatter().format(record))

        assert data["pool_id"] == "/subscriptions/x"
        assert data["changed_fields"] == ["tags"]
        assert "msg" not in data
        assert "lineno" not in data

    def test_exception_is_rendered(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = self._record()
            record.exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: boom" in data["exception"]


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_installs_single_handler(self, root_logger: logging.Logger) -> None:
        setup_logging("DEBUG")
        setup_logging("INFO")

        named = [h for h in root_logger.handlers if h.get_name() == LOG_HANDLER_NAME]
        assert len(named) == 1
        assert isinstance(named[0].formatter, JsonFormatter)
        assert root_logger.level == logging.INFO

    def test_quietens_azure_sdk(self, root_logger: logging.Logger) -> None:
        setup_logging(logging.DEBUG)

        assert logging.getLogger("azure").level == logging.WARNING
