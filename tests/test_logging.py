"""Tests for the structured logging system (stock_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from stock_kernel.exceptions import InsufficientStockError
from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite configuration."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "stock_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("stock_movement_recorded", extra={"seq": 3, "movement_type": "out"})

        record = _parse_log(stream)
        assert record["seq"] == 3
        assert record["movement_type"] == "out"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", product_id="prod-9")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["product_id"] == "prod-9"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_attributes_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InsufficientStockError("p-1", requested=5, available=2)
        except InsufficientStockError:
            get_logger("test").error("stock_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "InsufficientStockError"
        assert record["exc_code"] == InsufficientStockError.code
        assert record["exc_requested"] == 5
        assert record["exc_available"] == 2

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "owner_id" not in record

    def test_uuid_and_decimal_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("typed", extra={"movement_id": uid, "total_cost": Decimal("12.50")})

        record = _parse_log(stream)
        assert record["movement_id"] == str(uid)
        assert record["total_cost"] == "12.50"

    def test_debug_filtered_at_info(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    def test_set_and_get(self):
        LogContext.set(correlation_id="x", owner_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "owner_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(owner_id="outer")
        with LogContext.bind(owner_id="inner"):
            assert LogContext.get_all()["owner_id"] == "inner"
        assert LogContext.get_all()["owner_id"] == "outer"

    def test_bind_restores_none(self):
        """bind() restores to None if there was no previous value."""
        with LogContext.bind(product_id=uuid4()):
            assert "product_id" in LogContext.get_all()
        assert "product_id" not in LogContext.get_all()

    def test_bind_ignores_unknown_and_none(self):
        with LogContext.bind(movement_id=None, warehouse="W1"):
            assert LogContext.get_all() == {}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            owner_id="o",
            actor_id="a",
            product_id="p",
            movement_id="m",
            trace_id="t",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 6
        assert ctx["movement_id"] == "m"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        handlers = logging.getLogger("stock_kernel").handlers
        assert h1 in handlers
        assert h2 not in handlers

    def test_get_logger_returns_child(self):
        assert get_logger("services.stock").name == "stock_kernel.services.stock"

    def test_logger_hierarchy(self):
        """Child loggers inherit the stock_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "stock_kernel.deep.nested.module"
