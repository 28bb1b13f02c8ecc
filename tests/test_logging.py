"""Tests for the structured logging system (fulfillment_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO

import pytest

from fulfillment_kernel.exceptions import OverPickError
from fulfillment_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from fulfillment_modules.purchasing.models import POStatus


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests and restore the suite default."""
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


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["message"] == "hello"
        assert record["level"] == "INFO"
        assert record["logger"] == "fulfillment_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("receipt", extra={"order_id": "po-1", "line_count": 2})

        record = _parse_log(stream)
        assert record["order_id"] == "po-1"
        assert record["line_count"] == 2

    def test_decimal_and_enum_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "typed", extra={"amount": Decimal("374060.00"), "status": POStatus.ORDERED}
        )

        record = _parse_log(stream)
        assert record["amount"] == "374060.00"
        assert record["status"] == "ordered"

    def test_exception_attributes_become_exc_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise OverPickError(ordered="75", picked="80", line_id="pl-1")
        except OverPickError:
            get_logger("test").error("pick_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "OverPickError"
        assert record["exc_code"] == "OVER_PICK"
        assert record["exc_ordered"] == "75"
        assert record["exc_picked"] == "80"
        assert record["exc_line_id"] == "pl-1"
        assert "traceback" in record


class TestLogContext:

    def test_context_fields_in_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="corr-1", document_type="purchase_order")
        get_logger("test").info("with_context")

        record = _parse_log(stream)
        assert record["correlation_id"] == "corr-1"
        assert record["document_type"] == "purchase_order"

    def test_unknown_field_rejected(self):
        with pytest.raises(KeyError):
            LogContext.set(tenant="acme")

    def test_none_values_not_set(self):
        LogContext.set(actor_id="user-1")
        LogContext.set(actor_id=None)
        assert LogContext.get_all() == {"actor_id": "user-1"}

    def test_bind_restores_previous_values(self):
        LogContext.set(document_id="outer")
        with LogContext.bind(document_id="inner", trace_id="t-1"):
            assert LogContext.get_all()["document_id"] == "inner"
            assert LogContext.get_all()["trace_id"] == "t-1"
        assert LogContext.get_all() == {"document_id": "outer"}

    def test_clear(self):
        LogContext.set(correlation_id="c", actor_id="a")
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestConfigureLogging:

    def test_idempotent(self):
        first, first_stream = _make_handler()
        second, second_stream = _make_handler()
        configure_logging(handler=first)
        configure_logging(handler=second)
        get_logger("test").info("once")

        assert len(_parse_all_logs(first_stream)) == 1
        assert second_stream.getvalue() == ""

    def test_level_filters_records(self):
        handler, stream = _make_handler()
        configure_logging(level="WARNING", handler=handler)
        logger = get_logger("test")
        logger.info("dropped")
        logger.warning("kept")

        messages = [r["message"] for r in _parse_all_logs(stream)]
        assert messages == ["kept"]

    def test_reset_allows_reconfiguration(self):
        first, _ = _make_handler()
        configure_logging(handler=first)
        reset_logging()
        second, stream = _make_handler()
        configure_logging(handler=second)
        get_logger("test").info("after_reset")

        assert _parse_log(stream)["message"] == "after_reset"

    def test_does_not_propagate_to_root(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        assert logging.getLogger("fulfillment_kernel").propagate is False
