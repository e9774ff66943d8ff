"""
Period lock hash -- fingerprint of everything a month's close depends on.

The hash covers the tenant, the month, the period end, the as-of days and
every event in canonical order.  It keys the finalization job and gates
export regeneration, so it must not depend on how the store happened to
return the events.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from close_kernel.domain.events import BusinessEvent, sort_events
from close_kernel.utils.hashing import hash_payload
from close_engines.tracer import traced_engine


def _event_entry(event: BusinessEvent) -> dict[str, Any]:
    return {
        "id": event.id,
        "type": event.type,
        "occurredAt": event.occurred_at,
        "recordedAt": event.recorded_at,
        "monthKey": event.month_key,
        "deterministicId": event.deterministic_id,
        "payload": event.payload,
    }


def period_lock_document(
    tenant_id: str,
    month_key: str,
    period_end: str,
    as_of_days: Iterable[int],
    events: Iterable[BusinessEvent],
) -> dict[str, Any]:
    return {
        "tenantId": tenant_id,
        "monthKey": month_key,
        "periodEnd": period_end,
        "asOfDays": sorted(as_of_days),
        "events": [_event_entry(e) for e in sort_events(events)],
    }


@traced_engine("period_lock", "1.0", fingerprint_fields=("tenant_id", "month_key", "period_end", "as_of_days"))
def compute_period_lock_hash(
    *,
    tenant_id: str,
    month_key: str,
    period_end: str,
    as_of_days: Iterable[int],
    events: Iterable[BusinessEvent],
) -> str:
    """64-char hex SHA-256 of the canonical period document.

    Raises:
        TypeError: a payload holds a value with no JSON form.
    """
    return hash_payload(period_lock_document(tenant_id, month_key, period_end, as_of_days, events))
