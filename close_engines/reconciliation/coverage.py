"""
Confirmed-match coverage shared by the mismatch detector and the timeline.

Only CONFIRMED matches count.  Coverage is computed once per snapshot and
currency; both consumers derive their counts from the same figures so the
unmatched totals in the timeline always agree with the mismatch lists.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from close_engines.ledger_snapshot import BankTxSnapshot, InvoiceSnapshot, MatchSnapshot


@dataclass(frozen=True, slots=True)
class MatchCoverage:
    """
    Which records confirmed matches touch, for one currency.

    Attributes:
        matched_bank_tx_ids: Every bank tx id referenced by a confirmed
            match, whatever its currency or existence.
        invoice_matched_cents: Per invoice id, the sum of ``|amountCents|``
            of linked bank tx in the currency.  Only invoices that exist in
            the currency appear.
        invoices_without_bank_tx: Invoice ids named by a confirmed match
            that links no bank tx at all.
    """

    matched_bank_tx_ids: frozenset[str] = field(default_factory=frozenset)
    invoice_matched_cents: dict[str, int] = field(default_factory=dict)
    invoices_without_bank_tx: frozenset[str] = field(default_factory=frozenset)

    def matched_cents(self, invoice_id: str) -> int:
        return self.invoice_matched_cents.get(invoice_id, 0)


def compute_match_coverage(
    bank_tx: Iterable[BankTxSnapshot],
    invoices: Iterable[InvoiceSnapshot],
    matches: Iterable[MatchSnapshot],
    currency: str,
) -> MatchCoverage:
    tx_by_id = {tx.tx_id: tx for tx in bank_tx}
    invoice_by_id = {inv.invoice_id: inv for inv in invoices}

    matched_tx: set[str] = set()
    matched_cents: dict[str, int] = {}
    without_tx: set[str] = set()

    for match in matches:
        if not match.is_confirmed:
            continue
        if not match.bank_tx_ids:
            without_tx.update(match.invoice_ids)
        matched_tx.update(match.bank_tx_ids)

        linked = sum(
            abs(tx_by_id[tx_id].amount_cents)
            for tx_id in match.bank_tx_ids
            if tx_id in tx_by_id and tx_by_id[tx_id].currency == currency
        )
        for invoice_id in match.invoice_ids:
            invoice = invoice_by_id.get(invoice_id)
            if invoice is None or invoice.currency != currency:
                continue
            matched_cents[invoice_id] = matched_cents.get(invoice_id, 0) + linked

    return MatchCoverage(
        matched_bank_tx_ids=frozenset(matched_tx),
        invoice_matched_cents=matched_cents,
        invoices_without_bank_tx=frozenset(without_tx),
    )
