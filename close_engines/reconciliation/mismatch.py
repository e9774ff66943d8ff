"""
MismatchDetector -- Bank versus invoice discrepancies for one currency.

Architecture: close_engines -- pure calculation, zero I/O.

Four disjoint questions are answered from confirmed matches only:

    bankTxWithoutInvoice         bank tx no confirmed match references
    invoiceMatchedWithoutBankTx  invoices confirmed by a match with no bank tx
    partialPayments              0 < linked bank cents < invoice gross
    overpayments                 linked bank cents > invoice gross

Every list is sorted ascending by id.  Records in other currencies are
ignored.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from close_kernel.logging_config import get_logger
from close_engines.ledger_snapshot import BankTxSnapshot, InvoiceSnapshot, MatchSnapshot
from close_engines.reconciliation.coverage import compute_match_coverage
from close_engines.tracer import traced_engine

logger = get_logger("engines.mismatch")


@dataclass(frozen=True, slots=True)
class MismatchSummary:
    bank_tx_without_invoice: tuple[str, ...] = field(default_factory=tuple)
    invoice_matched_without_bank_tx: tuple[str, ...] = field(default_factory=tuple)
    partial_payments: tuple[str, ...] = field(default_factory=tuple)
    overpayments: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_clean(self) -> bool:
        return not (
            self.bank_tx_without_invoice
            or self.invoice_matched_without_bank_tx
            or self.partial_payments
            or self.overpayments
        )

    @property
    def invoice_mismatch_count(self) -> int:
        return (
            len(self.invoice_matched_without_bank_tx)
            + len(self.partial_payments)
            + len(self.overpayments)
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "bankTxWithoutInvoice": list(self.bank_tx_without_invoice),
            "invoiceMatchedWithoutBankTx": list(self.invoice_matched_without_bank_tx),
            "partialPayments": list(self.partial_payments),
            "overpayments": list(self.overpayments),
        }


@traced_engine("mismatch_detector", "1.0", fingerprint_fields=("bank_tx", "invoices", "matches", "currency"))
def detect_mismatches(
    *,
    bank_tx: Iterable[BankTxSnapshot],
    invoices: Iterable[InvoiceSnapshot],
    matches: Iterable[MatchSnapshot],
    currency: str,
) -> MismatchSummary:
    bank_tx = list(bank_tx)
    invoices = list(invoices)
    coverage = compute_match_coverage(bank_tx, invoices, matches, currency)

    in_currency = [inv for inv in invoices if inv.currency == currency]

    unmatched_tx = sorted(
        tx.tx_id
        for tx in bank_tx
        if tx.currency == currency and tx.tx_id not in coverage.matched_bank_tx_ids
    )
    without_tx = sorted(
        inv.invoice_id for inv in in_currency
        if inv.invoice_id in coverage.invoices_without_bank_tx
    )

    partial: list[str] = []
    over: list[str] = []
    for inv in in_currency:
        matched = coverage.matched_cents(inv.invoice_id)
        if 0 < matched < inv.total_gross_cents:
            partial.append(inv.invoice_id)
        elif matched > inv.total_gross_cents:
            over.append(inv.invoice_id)

    summary = MismatchSummary(
        bank_tx_without_invoice=tuple(unmatched_tx),
        invoice_matched_without_bank_tx=tuple(without_tx),
        partial_payments=tuple(sorted(partial)),
        overpayments=tuple(sorted(over)),
    )
    logger.info(
        "mismatches_detected",
        extra={
            "currency": currency,
            "bank_tx_without_invoice": len(summary.bank_tx_without_invoice),
            "invoice_mismatches": summary.invoice_mismatch_count,
        },
    )
    return summary
