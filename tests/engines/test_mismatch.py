"""
Tests for bank versus invoice mismatch detection.

Verifies:
- A fully paid invoice is clean
- Partial payments and overpayments by summed linked bank cents
- Coverage accumulates across several confirmed matches
- A confirmed match without bank tx flags its invoices
- Only CONFIRMED matches count; other currencies are ignored
"""

from close_engines.ledger_snapshot import build_ledger_snapshot
from close_engines.reconciliation import compute_match_coverage, detect_mismatches
from tests.conftest import bank_tx_event, invoice_event, match_event


def _detect(events, currency="EUR"):
    snapshot = build_ledger_snapshot(events=events)
    return detect_mismatches(
        bank_tx=snapshot.bank_tx,
        invoices=snapshot.invoices,
        matches=snapshot.matches,
        currency=currency,
    )


class TestPayments:

    def test_exact_payment_is_clean(self):
        summary = _detect([
            bank_tx_event("tx-1", -10000),
            invoice_event("inv-1", 10000),
            match_event("m-1", ["tx-1"], ["inv-1"]),
        ])
        assert summary.is_clean
        assert summary.invoice_mismatch_count == 0

    def test_partial_payment(self):
        """Invoice 30000 paid by a 15000 bank tx."""
        summary = _detect([
            bank_tx_event("tx-1", -15000),
            invoice_event("inv-1", 30000),
            match_event("m-1", ["tx-1"], ["inv-1"]),
        ])
        assert summary.partial_payments == ("inv-1",)
        assert summary.overpayments == ()

    def test_overpayment(self):
        summary = _detect([
            bank_tx_event("tx-1", -45000),
            invoice_event("inv-1", 30000),
            match_event("m-1", ["tx-1"], ["inv-1"]),
        ])
        assert summary.overpayments == ("inv-1",)
        assert summary.partial_payments == ()

    def test_coverage_accumulates_across_matches(self):
        summary = _detect([
            bank_tx_event("tx-1", -15000),
            bank_tx_event("tx-2", -15000),
            invoice_event("inv-1", 30000),
            match_event("m-1", ["tx-1"], ["inv-1"]),
            match_event("m-2", ["tx-2"], ["inv-1"]),
        ])
        assert summary.is_clean

    def test_unpaid_invoice_is_not_partial(self):
        summary = _detect([invoice_event("inv-1", 30000)])
        assert summary.is_clean


class TestUnmatched:

    def test_bank_tx_without_invoice_sorted(self):
        summary = _detect([bank_tx_event("tx-b", 100), bank_tx_event("tx-a", 100)])
        assert summary.bank_tx_without_invoice == ("tx-a", "tx-b")

    def test_match_without_bank_tx(self):
        summary = _detect([
            invoice_event("inv-1", 10000),
            match_event("m-1", [], ["inv-1"]),
        ])
        assert summary.invoice_matched_without_bank_tx == ("inv-1",)
        assert summary.invoice_mismatch_count == 1

    def test_proposed_match_ignored(self):
        summary = _detect([
            bank_tx_event("tx-1", -10000),
            invoice_event("inv-1", 10000),
            match_event("m-1", ["tx-1"], ["inv-1"], status="PROPOSED"),
        ])
        assert summary.bank_tx_without_invoice == ("tx-1",)

    def test_other_currency_ignored(self):
        summary = _detect([
            bank_tx_event("tx-1", -10000, currency="USD"),
            invoice_event("inv-1", 5000, currency="USD"),
            match_event("m-1", ["tx-1"], ["inv-1"]),
        ])
        assert summary.is_clean

        usd = _detect(
            [
                bank_tx_event("tx-1", -10000, currency="USD"),
                invoice_event("inv-1", 5000, currency="USD"),
                match_event("m-1", ["tx-1"], ["inv-1"]),
            ],
            currency="USD",
        )
        assert usd.overpayments == ("inv-1",)

    def test_document_keys(self):
        doc = _detect([bank_tx_event("tx-1", 1)]).to_document()
        assert doc == {
            "bankTxWithoutInvoice": ["tx-1"],
            "invoiceMatchedWithoutBankTx": [],
            "partialPayments": [],
            "overpayments": [],
        }


class TestCoverage:

    def test_matched_ids_include_unknown_tx(self):
        snapshot = build_ledger_snapshot(events=[match_event("m-1", ["tx-ghost"], [])])
        coverage = compute_match_coverage(snapshot.bank_tx, snapshot.invoices, snapshot.matches, "EUR")
        assert coverage.matched_bank_tx_ids == frozenset({"tx-ghost"})
        assert coverage.matched_cents("inv-x") == 0

    def test_negative_bank_amounts_count_absolute(self):
        snapshot = build_ledger_snapshot(events=[
            bank_tx_event("tx-1", -700),
            bank_tx_event("tx-2", 300),
            invoice_event("inv-1", 1000),
            match_event("m-1", ["tx-1", "tx-2"], ["inv-1"]),
        ])
        coverage = compute_match_coverage(snapshot.bank_tx, snapshot.invoices, snapshot.matches, "EUR")
        assert coverage.matched_cents("inv-1") == 1000
