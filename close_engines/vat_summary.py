"""
VatSummary -- Period VAT totals by rate bucket and by direction.

Architecture: close_engines -- pure calculation, zero I/O.

Each invoice in the summary currency has its VAT extracted from the gross
total and is added to the bucket for its rate.  Configured buckets always
appear, even when empty; rates with no configured bucket get one created
on the fly.  SALES invoices count as VAT collected, everything else as VAT
paid.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from close_kernel.domain.vat import VatRate, vat_from_gross_cents
from close_engines.ledger_snapshot import DIRECTION_SALES, InvoiceSnapshot
from close_engines.tracer import traced_engine

DEFAULT_VAT_BUCKETS: tuple[int, ...] = (21, 10, 4, 0)


def _rate_document(rate: VatRate) -> int | float:
    return float(rate) if isinstance(rate, Decimal) else rate


@dataclass(slots=True)
class VatBucket:
    rate: VatRate
    invoice_count: int = 0
    base_cents: int = 0
    vat_cents: int = 0
    gross_cents: int = 0

    def to_document(self) -> dict[str, Any]:
        return {
            "rate": _rate_document(self.rate),
            "invoiceCount": self.invoice_count,
            "baseCents": self.base_cents,
            "vatCents": self.vat_cents,
            "grossCents": self.gross_cents,
        }


@dataclass(frozen=True, slots=True)
class VatSummary:
    currency: str
    collected_vat_cents: int = 0
    paid_vat_cents: int = 0
    buckets: tuple[VatBucket, ...] = field(default_factory=tuple)

    @property
    def net_vat_cents(self) -> int:
        return self.collected_vat_cents - self.paid_vat_cents

    @property
    def total_vat_cents(self) -> int:
        return sum(b.vat_cents for b in self.buckets)

    def bucket(self, rate: VatRate) -> VatBucket | None:
        for b in self.buckets:
            if b.rate == rate:
                return b
        return None

    def to_document(self) -> dict[str, Any]:
        return {
            "currency": self.currency,
            "collectedVatCents": self.collected_vat_cents,
            "paidVatCents": self.paid_vat_cents,
            "netVatCents": self.net_vat_cents,
            "buckets": [b.to_document() for b in self.buckets],
        }


@traced_engine("vat_summary", "1.0", fingerprint_fields=("invoices", "currency", "bucket_rates"))
def compute_vat_summary(
    *,
    invoices: Iterable[InvoiceSnapshot],
    currency: str,
    bucket_rates: Sequence[VatRate] = DEFAULT_VAT_BUCKETS,
) -> VatSummary:
    """Summarise VAT for ``currency``.

    An empty ``bucket_rates`` is treated as a single zero-rate bucket.

    Raises:
        InvalidVatRateError: an invoice carries a rate outside [0, 100].
    """
    rates = list(bucket_rates) or [0]
    buckets: dict[VatRate, VatBucket] = {rate: VatBucket(rate=rate) for rate in rates}
    collected = 0
    paid = 0

    for invoice in invoices:
        if invoice.currency != currency:
            continue
        base, vat = vat_from_gross_cents(invoice.total_gross_cents, invoice.vat_rate_percent)
        bucket = buckets.get(invoice.vat_rate_percent)
        if bucket is None:
            bucket = buckets[invoice.vat_rate_percent] = VatBucket(rate=invoice.vat_rate_percent)
        bucket.invoice_count += 1
        bucket.base_cents += base
        bucket.vat_cents += vat
        bucket.gross_cents += invoice.total_gross_cents

        if invoice.direction == DIRECTION_SALES:
            collected += vat
        else:
            paid += vat

    return VatSummary(
        currency=currency,
        collected_vat_cents=collected,
        paid_vat_cents=paid,
        buckets=tuple(sorted(buckets.values(), key=lambda b: b.rate)),
    )
