"""Tests for the structured logging system (close_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from close_kernel.domain.records import JobStatus
from close_kernel.logging_config import (
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
    """Parse all JSON log lines from a stream."""
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
        assert record["logger"] == "close_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("readmodel_written", extra={"kind": "vatSummary", "event_count": 12})

        record = _parse_log(stream)
        assert record["kind"] == "vatSummary"
        assert record["event_count"] == 12

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(tenant_id="tenant-1", month_key="2026-01")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["tenant_id"] == "tenant-1"
        assert record["month_key"] == "2026-01"

    def test_context_wins_over_extra(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(job_id="from-context")
        get_logger("test").info("msg", extra={"job_id": "from-extra"})

        assert _parse_log(stream)["job_id"] == "from-context"

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

    def test_kernel_exception_code_extracted(self):
        """Close kernel exceptions carry a .code attribute."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from close_kernel.exceptions import MalformedEventError

        try:
            raise MalformedEventError("evt-1", "BANK_TX_ARRIVED", "amountCents")
        except MalformedEventError:
            logger.error("fold_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "SCHEMA_MISMATCH"
        assert record["exc_type"] == "MalformedEventError"
        assert record["exc_event_id"] == "evt-1"
        assert record["exc_field"] == "amountCents"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("bare_message")

        record = _parse_log(stream)
        assert "tenant_id" not in record
        assert "job_id" not in record

    def test_special_types_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        uid = uuid4()
        logger.info(
            "typed",
            extra={
                "entry_id": uid,
                "rate": Decimal("5.5"),
                "day": date(2026, 1, 31),
                "status": JobStatus.RUNNING,
                "days": (5, 10),
            },
        )

        record = _parse_log(stream)
        assert record["entry_id"] == str(uid)
        assert record["rate"] == "5.5"
        assert record["day"] == "2026-01-31"
        assert record["status"] == "RUNNING"
        assert record["days"] == [5, 10]

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO, so the debug line is dropped
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
        LogContext.set(tenant_id="t", job_id="j")
        assert LogContext.get_all() == {"tenant_id": "t", "job_id": "j"}

    def test_clear(self):
        LogContext.set(tenant_id="t")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(month_key="2026-01")
        with LogContext.bind(month_key="2026-02"):
            assert LogContext.get_all()["month_key"] == "2026-02"
        assert LogContext.get_all()["month_key"] == "2026-01"

    def test_bind_restores_none(self):
        """bind() restores to None if there was no previous value."""
        assert "job_id" not in LogContext.get_all()
        with LogContext.bind(job_id="temp"):
            assert LogContext.get_all()["job_id"] == "temp"
        assert "job_id" not in LogContext.get_all()

    def test_bind_rejects_unknown_field(self):
        with pytest.raises(ValueError):
            LogContext.bind(event_id="nope")

    def test_additive_set(self):
        LogContext.set(tenant_id="a")
        LogContext.set(actor_id="b")
        ctx = LogContext.get_all()
        assert ctx["tenant_id"] == "a"
        assert ctx["actor_id"] == "b"

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            tenant_id="t",
            month_key="m",
            job_id="j",
            actor_id="a",
            trace_id="x",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 6
        assert ctx["correlation_id"] == "c"
        assert ctx["trace_id"] == "x"


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
        root = logging.getLogger("close_kernel")
        assert len(root.handlers) == 1

    def test_get_logger_returns_child(self):
        logger = get_logger("services.period_finalization")
        assert logger.name == "close_kernel.services.period_finalization"

    def test_logger_hierarchy(self):
        """Child loggers inherit the close_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "close_kernel.deep.nested.module"
