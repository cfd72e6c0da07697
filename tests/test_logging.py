"""Tests for the structured logging system (billing_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from billing_kernel.logging_config import (
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
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "billing_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("payment_applied", extra={"attempt": 2, "state": "polling"})

        record = _parse_log(stream)
        assert record["attempt"] == 2
        assert record["state"] == "polling"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", document_id="INV-9")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["document_id"] == "INV-9"

    def test_decimal_and_date_serialized_as_strings(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info("amounts", extra={
            "outstanding_amount": Decimal("708.00"),
            "as_of": date(2024, 3, 1),
            "entry_id": uid,
        })

        record = _parse_log(stream)
        assert record["outstanding_amount"] == "708.00"
        assert record["as_of"] == "2024-03-01"
        assert record["entry_id"] == str(uid)

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_billing_exception_code_extracted(self):
        """Billing kernel exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from billing_kernel.exceptions import CapExceededError

        try:
            raise CapExceededError(
                invoice_id="INV-1",
                proposed_total=Decimal("708.00"),
                remaining_amount=Decimal("700"),
                existing_total=Decimal("300"),
                currency="INR",
            )
        except CapExceededError:
            logger.error("cap_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "CREDIT_NOTE_CAP_EXCEEDED"
        assert record["exc_type"] == "CapExceededError"
        assert record["exc_invoice_id"] == "INV-1"
        assert record["exc_proposed_total"] == "708.00"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "document_id" not in record

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO, so the debug record is dropped
        assert len(logs) == 2
        for record in logs:
            assert "ts" in record
            assert "level" in record
            assert "logger" in record
            assert "message" in record


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", payment_reference="pay_1")
        ctx = LogContext.get_all()
        assert ctx == {"correlation_id": "x", "payment_reference": "pay_1"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(document_id="outer")
        with LogContext.bind(document_id="inner"):
            assert LogContext.get_all()["document_id"] == "inner"
        assert LogContext.get_all()["document_id"] == "outer"

    def test_bind_restores_none(self):
        """bind() restores to None if there was no previous value."""
        assert "document_id" not in LogContext.get_all()
        with LogContext.bind(document_id="temp"):
            assert LogContext.get_all()["document_id"] == "temp"
        assert "document_id" not in LogContext.get_all()

    def test_bind_skips_none_values(self):
        with LogContext.bind(document_id="INV-1", payment_reference=None):
            assert LogContext.get_all() == {"document_id": "INV-1"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            document_id="d",
            client_id="cl",
            payment_reference="p",
            actor_id="a",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["client_id"] == "cl"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        root = logging.getLogger("billing_kernel")
        assert len(root.handlers) == 1

    def test_get_logger_returns_child(self):
        logger = get_logger("services.payment_confirmation")
        assert logger.name == "billing_kernel.services.payment_confirmation"

    def test_logger_hierarchy(self):
        """Child loggers inherit the billing_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "billing_kernel.deep.nested.module"
