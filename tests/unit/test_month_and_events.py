"""
Unit tests for month keys and the business event envelope.

Verifies:
- Month parsing, bounds and calendar arithmetic
- Canonical event order (occurredAt, deterministicId)
- Event document round trip and required envelope fields
"""

import pytest

from close_kernel.domain.events import (
    BusinessEvent,
    add_days,
    compare_events,
    date_key,
    events_for_month,
    sort_events,
)
from close_kernel.domain.month import Month, parse_date_key
from close_kernel.exceptions import InvalidDateError, InvalidPeriodError, MissingFieldError
from tests.conftest import bank_tx_event, make_event


class TestMonth:

    def test_parse(self):
        month = Month.parse("2026-02")
        assert (month.year, month.month) == (2026, 2)
        assert month.key == "2026-02"
        assert str(month) == "2026-02"

    @pytest.mark.parametrize("key", ["2026-13", "2026-00", "2026-1", "26-01", "", None, "1899-12"])
    def test_parse_rejects(self, key):
        with pytest.raises(InvalidPeriodError):
            Month.parse(key)

    def test_bounds(self):
        assert Month.parse("2026-02").end == "2026-02-28"
        assert Month.parse("2024-02").days == 29
        assert Month.parse("2026-01").start == "2026-01-01"
        assert Month.parse("2026-04").end == "2026-04-30"

    def test_arithmetic(self):
        assert Month.parse("2026-12").next().key == "2027-01"
        assert Month.parse("2026-01").previous().key == "2025-12"
        assert Month.parse("2026-01").add(14).key == "2027-03"
        assert Month.parse("2026-03").subtract(3).key == "2025-12"

    def test_compare(self):
        a, b = Month.parse("2025-12"), Month.parse("2026-01")
        assert a.compare(b) == -1
        assert b.compare(a) == 1
        assert a.compare(Month(2025, 12)) == 0

    def test_from_date(self):
        assert Month.from_date("2026-01-31").key == "2026-01"


class TestDateKeys:

    def test_date_key(self):
        assert date_key("2026-01-15T10:00:00.000Z") == "2026-01-15"

    def test_date_key_rejects_garbage(self):
        with pytest.raises(InvalidDateError):
            date_key("yesterday")

    def test_parse_date_key_rejects_impossible_date(self):
        with pytest.raises(InvalidDateError):
            parse_date_key("2026-02-30")

    def test_add_days_crosses_month(self):
        assert add_days("2026-01-31", 5) == "2026-02-05"
        assert add_days("2026-03-01", -1) == "2026-02-28"


class TestEventOrder:

    def test_sorted_by_occurred_at_then_deterministic_id(self):
        late = bank_tx_event("tx-a", 1, occurred_at="2026-01-20T00:00:00.000Z")
        early_b = bank_tx_event("tx-b", 1, occurred_at="2026-01-10T00:00:00.000Z")
        early_a = bank_tx_event("tx-0", 1, occurred_at="2026-01-10T00:00:00.000Z")
        ordered = sort_events([late, early_b, early_a])
        assert [e.id for e in ordered] == ["evt-tx-0", "evt-tx-b", "evt-tx-a"]
        assert compare_events(early_a, early_b) == -1
        assert compare_events(late, late) == 0

    def test_events_for_month_filters(self):
        jan = bank_tx_event("tx-1", 1)
        feb = bank_tx_event("tx-2", 1, month_key="2026-02")
        assert events_for_month([feb, jan], "2026-01") == [jan]


class TestEventDocument:

    def test_round_trip(self):
        event = bank_tx_event("tx-1", -500, description="Café")
        assert BusinessEvent.from_document(event.to_document()) == event

    def test_document_uses_wire_keys(self):
        doc = make_event("BANK_TX_ARRIVED", {"txId": "x"}, event_id="e-1").to_document()
        assert set(doc) == {
            "id",
            "tenantId",
            "type",
            "occurredAt",
            "recordedAt",
            "monthKey",
            "deterministicId",
            "payload",
        }

    @pytest.mark.parametrize("missing", ["id", "tenantId", "occurredAt", "deterministicId"])
    def test_missing_envelope_field(self, missing):
        doc = bank_tx_event("tx-1", 1).to_document()
        doc[missing] = ""
        with pytest.raises(MissingFieldError) as exc:
            BusinessEvent.from_document(doc)
        assert exc.value.field == missing

    def test_missing_payload_defaults_empty(self):
        doc = bank_tx_event("tx-1", 1).to_document()
        del doc["payload"]
        assert BusinessEvent.from_document(doc).payload == {}
