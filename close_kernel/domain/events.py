"""
Events -- Append-only business events and their canonical order.

Responsibility:
    Defines the BusinessEvent envelope every close computation consumes,
    the total order ``(occurredAt, deterministicId)``, and the date-key
    helpers used for as-of cutoffs.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Events are immutable once built; the fold never mutates them.
    - Ordering compares the ISO strings lexicographically, so every
      timestamp must use the same UTC ``...Z`` rendering.
    - Date keys are the first ten characters of an ISO timestamp.

Failure modes:
    - MissingFieldError when a stored document lacks an envelope field.
    - InvalidDateError for timestamps that do not start with YYYY-MM-DD.

Audit relevance:
    The canonical order decides last-write-wins in the ledger fold and the
    event order inside the period lock hash.  Storage order never matters.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any

from close_kernel.domain.month import parse_date_key
from close_kernel.exceptions import MissingFieldError


class EventType(str, Enum):
    BANK_TX_ARRIVED = "BANK_TX_ARRIVED"
    INVOICE_CREATED = "INVOICE_CREATED"
    INVOICE_UPDATED = "INVOICE_UPDATED"
    MATCH_RESOLVED = "MATCH_RESOLVED"
    ADJUSTMENT_POSTED = "ADJUSTMENT_POSTED"


EVENT_TYPES: tuple[str, ...] = tuple(t.value for t in EventType)

_ENVELOPE_FIELDS = (
    "id",
    "tenantId",
    "type",
    "occurredAt",
    "recordedAt",
    "monthKey",
    "deterministicId",
)


@dataclass(frozen=True, slots=True)
class BusinessEvent:
    """
    One fact in the tenant's event log.

    Contract:
        ``payload`` keeps the wire (camelCase) keys exactly as stored; the
        period lock hash serializes it verbatim.

    Non-goals:
        - Does NOT validate payload fields; the ledger fold does that for
          the fields each entity needs.
    """

    id: str
    tenant_id: str
    type: str
    occurred_at: str
    recorded_at: str
    month_key: str
    deterministic_id: str
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self.occurred_at, self.deterministic_id)

    @property
    def occurred_date(self) -> str:
        return date_key(self.occurred_at)

    @property
    def recorded_date(self) -> str:
        return date_key(self.recorded_at)

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "type": self.type,
            "occurredAt": self.occurred_at,
            "recordedAt": self.recorded_at,
            "monthKey": self.month_key,
            "deterministicId": self.deterministic_id,
            "payload": dict(self.payload),
        }

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> BusinessEvent:
        for name in _ENVELOPE_FIELDS:
            value = doc.get(name)
            if not isinstance(value, str) or not value:
                raise MissingFieldError(name, context="event document")
        payload = doc.get("payload") or {}
        return cls(
            id=doc["id"],
            tenant_id=doc["tenantId"],
            type=doc["type"],
            occurred_at=doc["occurredAt"],
            recorded_at=doc["recordedAt"],
            month_key=doc["monthKey"],
            deterministic_id=doc["deterministicId"],
            payload=dict(payload),
        )


def compare_events(a: BusinessEvent, b: BusinessEvent) -> int:
    """Return -1, 0 or 1 under the canonical event order."""
    return (a.sort_key > b.sort_key) - (a.sort_key < b.sort_key)


def sort_events(events: Iterable[BusinessEvent]) -> list[BusinessEvent]:
    return sorted(events, key=lambda e: e.sort_key)


def events_for_month(events: Iterable[BusinessEvent], month_key: str) -> list[BusinessEvent]:
    """Events tagged with ``month_key``, in canonical order."""
    return sort_events(e for e in events if e.month_key == month_key)


def date_key(iso_timestamp: str) -> str:
    """``YYYY-MM-DD`` prefix of an ISO timestamp."""
    key = iso_timestamp[:10] if isinstance(iso_timestamp, str) else iso_timestamp
    parse_date_key(key)
    return key


def add_days(day: str, days: int) -> str:
    """Shift a ``YYYY-MM-DD`` key by whole calendar days."""
    return (parse_date_key(day) + timedelta(days=days)).isoformat()
