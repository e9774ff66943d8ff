"""
Pytest fixtures for the close analytics test suite.

Provides:
- Structured logging setup and log capture
- In-memory SQLite sessions with per-test rollback
- Business event builders
- Deterministic clock, config and store fixtures
"""

import json
import logging
from io import StringIO
from typing import Any, Generator

import pytest
from sqlalchemy.orm import Session

from close_config.schema import CloseConfig
from close_kernel.db.engine import create_tables, init_engine_from_url, reset_engine
from close_kernel.domain.clock import DeterministicClock
from close_kernel.domain.events import BusinessEvent, EventType
from close_kernel.domain.records import PeriodRecord, PeriodStatus
from close_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from close_kernel.services.close_store import SqlCloseStore

TENANT = "tenant-1"
MONTH = "2026-01"
PERIOD_END = "2026-01-31"
MID_MONTH = "2026-01-15T10:00:00.000Z"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture close_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow):
            workflow.finalize(...)
            logs = captured_logs()
            assert any(r["message"] == "period_finalize_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("close_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Event builders
# =============================================================================


def make_event(
    event_type: str,
    payload: dict[str, Any],
    *,
    event_id: str,
    occurred_at: str = MID_MONTH,
    recorded_at: str | None = None,
    month_key: str = MONTH,
    tenant_id: str = TENANT,
) -> BusinessEvent:
    return BusinessEvent(
        id=event_id,
        tenant_id=tenant_id,
        type=event_type,
        occurred_at=occurred_at,
        recorded_at=recorded_at or occurred_at,
        month_key=month_key,
        deterministic_id=f"det-{event_id}",
        payload=payload,
    )


def bank_tx_event(
    tx_id: str,
    amount_cents: int,
    *,
    currency: str = "EUR",
    booking_date: str | None = "2026-01-15",
    description: str | None = None,
    event_id: str | None = None,
    **kwargs: Any,
) -> BusinessEvent:
    payload: dict[str, Any] = {"txId": tx_id, "amountCents": amount_cents, "currency": currency}
    if booking_date is not None:
        payload["bookingDate"] = booking_date
    if description is not None:
        payload["descriptionRaw"] = description
    return make_event(EventType.BANK_TX_ARRIVED.value, payload, event_id=event_id or f"evt-{tx_id}", **kwargs)


def invoice_event(
    invoice_id: str,
    gross_cents: int,
    *,
    rate: int | float = 21,
    currency: str = "EUR",
    direction: str | None = "EXPENSE",
    issue_date: str | None = "2026-01-10",
    supplier: str | None = "Acme SL",
    number: str | None = None,
    updated: bool = False,
    event_id: str | None = None,
    **kwargs: Any,
) -> BusinessEvent:
    payload: dict[str, Any] = {
        "invoiceId": invoice_id,
        "totalGrossCents": gross_cents,
        "vatRatePercent": rate,
        "currency": currency,
    }
    if direction is not None:
        payload["direction"] = direction
    if issue_date is not None:
        payload["issueDate"] = issue_date
    if supplier is not None:
        payload["supplierNameRaw"] = supplier
    payload["invoiceNumber"] = number if number is not None else f"N-{invoice_id}"
    event_type = EventType.INVOICE_UPDATED if updated else EventType.INVOICE_CREATED
    return make_event(event_type.value, payload, event_id=event_id or f"evt-{invoice_id}", **kwargs)


def match_event(
    match_id: str,
    bank_tx_ids: list[str],
    invoice_ids: list[str],
    *,
    status: str = "CONFIRMED",
    event_id: str | None = None,
    **kwargs: Any,
) -> BusinessEvent:
    payload = {
        "matchId": match_id,
        "status": status,
        "bankTxIds": bank_tx_ids,
        "invoiceIds": invoice_ids,
        "matchType": "EXACT",
        "score": 100,
    }
    return make_event(EventType.MATCH_RESOLVED.value, payload, event_id=event_id or f"evt-{match_id}", **kwargs)


def adjustment_event(
    adjustment_id: str,
    category: str,
    amount_cents: int,
    *,
    currency: str = "EUR",
    event_id: str | None = None,
    **kwargs: Any,
) -> BusinessEvent:
    payload = {
        "adjustmentId": adjustment_id,
        "category": category,
        "amountCents": amount_cents,
        "currency": currency,
    }
    return make_event(
        EventType.ADJUSTMENT_POSTED.value, payload, event_id=event_id or f"evt-{adjustment_id}", **kwargs
    )


def reconciled_month() -> list[BusinessEvent]:
    """One invoice paid by one bank tx, both confirmed, plus late data."""
    return [
        bank_tx_event("tx-1", -12100, occurred_at="2026-01-20T09:00:00.000Z"),
        invoice_event("inv-1", 12100, occurred_at="2026-01-10T09:00:00.000Z"),
        bank_tx_event("tx-2", 50000, occurred_at="2026-02-03T09:00:00.000Z"),
        match_event("m-1", ["tx-1"], ["inv-1"], occurred_at="2026-02-08T09:00:00.000Z"),
        adjustment_event(
            "adj-1",
            "EXPENSE",
            2000,
            occurred_at="2026-02-12T09:00:00.000Z",
            recorded_at="2026-02-25T09:00:00.000Z",
        ),
    ]


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    reset_engine()


@pytest.fixture(scope="function")
def session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins an outer transaction and turns its own commits into
    savepoints; the outer transaction is rolled back at teardown.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


@pytest.fixture
def close_config() -> CloseConfig:
    return CloseConfig()


@pytest.fixture
def store(session, deterministic_clock) -> SqlCloseStore:
    return SqlCloseStore(session, clock=deterministic_clock)


@pytest.fixture
def finalized_period(store):
    """Factory: mark a month FINALIZED with optional as-of days."""

    def _finalize(
        month_key: str = MONTH,
        as_of_days: tuple[int, ...] | None = (5, 10, 20),
        tenant_id: str = TENANT,
        finalized_at: str = "2026-02-28T18:00:00.000Z",
    ) -> PeriodRecord:
        return store.upsert_period(
            PeriodRecord(
                tenant_id=tenant_id,
                month_key=month_key,
                status=PeriodStatus.FINALIZED,
                finalized_at=finalized_at,
                as_of_days=as_of_days,
            )
        )

    return _finalize
