"""Tests for the structured logging system (wallet_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from wallet_kernel.exceptions import InsufficientFundsError
from wallet_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:
    """JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        (record,) = _parse_all_logs(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "wallet_kernel.test"
        assert "ts" in record

    def test_extra_fields_and_decimal(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info(
            "balance_adjusted", extra={"delta": Decimal("-10.00"), "attempt": 2},
        )

        (record,) = _parse_all_logs(stream)
        assert record["delta"] == "-10.00"
        assert record["attempt"] == 2

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        sender = uuid4()
        with LogContext.bind(correlation_id="abc-123", sender_id=sender):
            get_logger("test").info("transfer_started")

        (record,) = _parse_all_logs(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["sender_id"] == str(sender)

    def test_kernel_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InsufficientFundsError("u1", "c1", Decimal("5.00"), Decimal("10.00"))
        except InsufficientFundsError:
            get_logger("test").error("transfer_failed", exc_info=True)

        (record,) = _parse_all_logs(stream)
        assert record["exc_code"] == "INSUFFICIENT_FUNDS"
        assert record["exc_type"] == "InsufficientFundsError"
        assert record["exc_available"] == "5.00"
        assert record["exc_requested"] == "10.00"
        assert "traceback" in record

    def test_debug_suppressed_at_info(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.debug("second")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["first"]


class TestLogContext:
    def test_bind_restores_previous_value(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner", transaction_id=uuid4()):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all() == {"correlation_id": "outer"}

    def test_unknown_fields_ignored_by_bind(self):
        with LogContext.bind(not_a_field="x"):
            assert LogContext.get_all() == {}

    def test_clear(self):
        LogContext.set(actor_id="a", receiver_id="r")
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestConfigureLogging:
    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)
        assert logging.getLogger("wallet_kernel").handlers == [h1]

    def test_get_logger_returns_child(self):
        assert get_logger("services.transfer_engine").name == (
            "wallet_kernel.services.transfer_engine"
        )
