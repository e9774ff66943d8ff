"""
LedgerSnapshot -- Pure fold of business events into current-state tables.

Architecture: close_engines -- pure calculation, zero I/O, zero DB access.

The snapshot is derived data.  It is rebuilt from the event log for the
final state of a month and, truncated at a cutoff, for every as-of point
of the counterfactual timeline.

Invariants enforced:
    - Events are folded in canonical order ``(occurredAt, deterministicId)``
      whatever order they arrive in.
    - Bank transactions, invoices and matches are last-write-wins per
      natural id; INVOICE_UPDATED overwrites INVOICE_CREATED.
    - Adjustments accumulate; they are never overwritten.
    - Unknown event types are carried in the log but ignored by the fold.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Any

from close_kernel.domain.events import BusinessEvent, EventType, sort_events
from close_kernel.exceptions import MalformedEventError
from close_kernel.logging_config import get_logger
from close_engines.tracer import traced_engine

logger = get_logger("engines.ledger_snapshot")

DIRECTION_SALES = "SALES"
DIRECTION_EXPENSE = "EXPENSE"
MATCH_CONFIRMED = "CONFIRMED"


def _compact(doc: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in doc.items() if v is not None}


@dataclass(frozen=True, slots=True)
class BankTxSnapshot:
    tx_id: str
    amount_cents: int
    currency: str
    booking_date: str | None = None
    description_raw: str | None = None

    def to_document(self) -> dict[str, Any]:
        return _compact({
            "txId": self.tx_id,
            "bookingDate": self.booking_date,
            "amountCents": self.amount_cents,
            "currency": self.currency,
            "descriptionRaw": self.description_raw,
        })


@dataclass(frozen=True, slots=True)
class InvoiceSnapshot:
    invoice_id: str
    total_gross_cents: int
    vat_rate_percent: int | Decimal
    currency: str
    direction: str = DIRECTION_EXPENSE
    issue_date: str | None = None
    invoice_number: str | None = None
    supplier_name_raw: str | None = None

    def to_document(self) -> dict[str, Any]:
        rate = self.vat_rate_percent
        return _compact({
            "invoiceId": self.invoice_id,
            "issueDate": self.issue_date,
            "invoiceNumber": self.invoice_number,
            "supplierNameRaw": self.supplier_name_raw,
            "totalGrossCents": self.total_gross_cents,
            "vatRatePercent": float(rate) if isinstance(rate, Decimal) else rate,
            "currency": self.currency,
            "direction": self.direction,
        })


@dataclass(frozen=True, slots=True)
class MatchSnapshot:
    match_id: str
    status: str
    bank_tx_ids: tuple[str, ...] = ()
    invoice_ids: tuple[str, ...] = ()
    match_type: str | None = None
    score: int | float | None = None

    @property
    def is_confirmed(self) -> bool:
        return self.status == MATCH_CONFIRMED

    def to_document(self) -> dict[str, Any]:
        return _compact({
            "matchId": self.match_id,
            "status": self.status,
            "bankTxIds": list(self.bank_tx_ids),
            "invoiceIds": list(self.invoice_ids),
            "matchType": self.match_type,
            "score": self.score,
        })


@dataclass(frozen=True, slots=True)
class AdjustmentSnapshot:
    category: str
    amount_cents: int
    currency: str
    adjustment_id: str | None = None

    def to_document(self) -> dict[str, Any]:
        return _compact({
            "adjustmentId": self.adjustment_id,
            "category": self.category,
            "amountCents": self.amount_cents,
            "currency": self.currency,
        })


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    """
    Current state of one month's ledger at some point of the event log.

    Guarantees:
        - Entity iteration order is first-seen order under the canonical
          event order, so equal logs give equal snapshots.
    """

    bank_tx_by_id: Mapping[str, BankTxSnapshot]
    invoice_by_id: Mapping[str, InvoiceSnapshot]
    match_by_id: Mapping[str, MatchSnapshot]
    adjustments: tuple[AdjustmentSnapshot, ...]

    @property
    def bank_tx(self) -> list[BankTxSnapshot]:
        return list(self.bank_tx_by_id.values())

    @property
    def invoices(self) -> list[InvoiceSnapshot]:
        return list(self.invoice_by_id.values())

    @property
    def matches(self) -> list[MatchSnapshot]:
        return list(self.match_by_id.values())

    @property
    def confirmed_matches(self) -> list[MatchSnapshot]:
        return [m for m in self.match_by_id.values() if m.is_confirmed]

    def to_document(self) -> dict[str, Any]:
        return {
            "bankTx": [tx.to_document() for tx in self.bank_tx],
            "invoices": [inv.to_document() for inv in self.invoices],
            "matches": [m.to_document() for m in self.matches],
            "adjustments": [a.to_document() for a in self.adjustments],
        }


# ---------------------------------------------------------------------------
# Payload readers
# ---------------------------------------------------------------------------


def _str(evt: BusinessEvent, name: str, required: bool = True) -> str | None:
    value = evt.payload.get(name)
    if value is None and not required:
        return None
    if not isinstance(value, str) or (required and not value):
        raise MalformedEventError(evt.id, evt.type, name)
    return value


def _cents(evt: BusinessEvent, name: str) -> int:
    value = evt.payload.get(name)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedEventError(evt.id, evt.type, name)
    return value


def _rate(evt: BusinessEvent, name: str) -> int | Decimal:
    value = evt.payload.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedEventError(evt.id, evt.type, name)
    if isinstance(value, float):
        return int(value) if value.is_integer() else Decimal(str(value))
    return value


def _ids(evt: BusinessEvent, name: str) -> tuple[str, ...]:
    value = evt.payload.get(name)
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise MalformedEventError(evt.id, evt.type, name)
    return tuple(value)


def _bank_tx(evt: BusinessEvent) -> BankTxSnapshot:
    return BankTxSnapshot(
        tx_id=_str(evt, "txId"),
        booking_date=_str(evt, "bookingDate", required=False),
        amount_cents=_cents(evt, "amountCents"),
        currency=_str(evt, "currency"),
        description_raw=_str(evt, "descriptionRaw", required=False),
    )


def _invoice(evt: BusinessEvent) -> InvoiceSnapshot:
    return InvoiceSnapshot(
        invoice_id=_str(evt, "invoiceId"),
        issue_date=_str(evt, "issueDate", required=False),
        invoice_number=_str(evt, "invoiceNumber", required=False),
        supplier_name_raw=_str(evt, "supplierNameRaw", required=False),
        total_gross_cents=_cents(evt, "totalGrossCents"),
        vat_rate_percent=_rate(evt, "vatRatePercent"),
        currency=_str(evt, "currency"),
        direction=_str(evt, "direction", required=False) or DIRECTION_EXPENSE,
    )


def _match(evt: BusinessEvent) -> MatchSnapshot:
    score = evt.payload.get("score")
    return MatchSnapshot(
        match_id=_str(evt, "matchId"),
        status=_str(evt, "status"),
        bank_tx_ids=_ids(evt, "bankTxIds"),
        invoice_ids=_ids(evt, "invoiceIds"),
        match_type=_str(evt, "matchType", required=False),
        score=score if isinstance(score, (int, float)) and not isinstance(score, bool) else None,
    )


def _adjustment(evt: BusinessEvent) -> AdjustmentSnapshot:
    return AdjustmentSnapshot(
        adjustment_id=_str(evt, "adjustmentId", required=False),
        category=_str(evt, "category"),
        amount_cents=_cents(evt, "amountCents"),
        currency=_str(evt, "currency"),
    )


# ---------------------------------------------------------------------------
# Fold
# ---------------------------------------------------------------------------


@traced_engine("ledger_snapshot", "1.0", fingerprint_fields=("events",))
def build_ledger_snapshot(*, events: Iterable[BusinessEvent]) -> LedgerSnapshot:
    """Fold events into a LedgerSnapshot.

    Preconditions:
        ``events`` may be in any physical order.

    Raises:
        MalformedEventError: a recognised event lacks a field its entity
            requires.
    """
    bank_tx: dict[str, BankTxSnapshot] = {}
    invoices: dict[str, InvoiceSnapshot] = {}
    matches: dict[str, MatchSnapshot] = {}
    adjustments: list[AdjustmentSnapshot] = []

    for evt in sort_events(events):
        if evt.type == EventType.BANK_TX_ARRIVED:
            tx = _bank_tx(evt)
            bank_tx[tx.tx_id] = tx
        elif evt.type in (EventType.INVOICE_CREATED, EventType.INVOICE_UPDATED):
            inv = _invoice(evt)
            invoices[inv.invoice_id] = inv
        elif evt.type == EventType.MATCH_RESOLVED:
            match = _match(evt)
            matches[match.match_id] = match
        elif evt.type == EventType.ADJUSTMENT_POSTED:
            adjustments.append(_adjustment(evt))
        else:
            logger.debug("event_type_ignored", extra={"event_id": evt.id, "event_type": evt.type})

    return LedgerSnapshot(
        bank_tx_by_id=MappingProxyType(bank_tx),
        invoice_by_id=MappingProxyType(invoices),
        match_by_id=MappingProxyType(matches),
        adjustments=tuple(adjustments),
    )
