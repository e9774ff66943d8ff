"""
Ledger CSV export -- one row per bank transaction and invoice.

Architecture: close_engines -- pure rendering, returns bytes, writes nothing.

Layout:
    recordType,recordId,date,description,amountCents,currency,matchedIds

Bank rows come first, ordered by ``(bookingDate, txId)``; invoice rows
follow, ordered by ``(issueDate, invoiceId)``.  ``matchedIds`` lists the
counterpart ids of CONFIRMED matches, sorted and ``|``-joined.  Records with
no date are dated on the first day of the month.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable

from close_kernel.exceptions import MissingFieldError, NoDataToExportError
from close_kernel.logging_config import get_logger
from close_engines.exports.base import RenderedExport
from close_engines.ledger_snapshot import BankTxSnapshot, InvoiceSnapshot, MatchSnapshot
from close_engines.tracer import traced_engine

logger = get_logger("engines.exports.ledger_csv")

CSV_CONTENT_TYPE = "text/csv"
CSV_HEADER = ("recordType", "recordId", "date", "description", "amountCents", "currency", "matchedIds")

RECORD_BANK_TX = "BANK_TX"
RECORD_INVOICE = "INVOICE"


def _counterpart_index(matches: Iterable[MatchSnapshot]) -> tuple[dict[str, list[str]], dict[str, list[str]]]:
    by_tx: dict[str, list[str]] = {}
    by_invoice: dict[str, list[str]] = {}
    for match in matches:
        if not match.is_confirmed:
            continue
        for tx_id in match.bank_tx_ids:
            by_tx.setdefault(tx_id, []).extend(match.invoice_ids)
        for invoice_id in match.invoice_ids:
            by_invoice.setdefault(invoice_id, []).extend(match.bank_tx_ids)
    return by_tx, by_invoice


def ledger_csv_filename(tenant_id: str, month_key: str) -> str:
    return f"ledger_{month_key}_{tenant_id}.csv"


@traced_engine("ledger_csv", "1.0", fingerprint_fields=("month_key", "currency", "bank_tx", "invoices", "matches"))
def render_ledger_csv(
    *,
    tenant_id: str,
    month_key: str,
    currency: str,
    bank_tx: Iterable[BankTxSnapshot],
    invoices: Iterable[InvoiceSnapshot],
    matches: Iterable[MatchSnapshot],
) -> RenderedExport:
    """Render the ledger for ``currency``.

    Raises:
        MissingFieldError: tenant or month missing.
        NoDataToExportError: no bank tx or invoice in the currency.
    """
    if not tenant_id:
        raise MissingFieldError("tenantId", context="ledger export")
    if not month_key:
        raise MissingFieldError("monthKey", context="ledger export")

    default_date = f"{month_key}-01"
    by_tx, by_invoice = _counterpart_index(matches)

    bank_rows = sorted(
        (
            (
                RECORD_BANK_TX,
                tx.tx_id,
                tx.booking_date or default_date,
                tx.description_raw or "",
                str(tx.amount_cents),
                tx.currency,
                "|".join(sorted(by_tx.get(tx.tx_id, ()))),
            )
            for tx in bank_tx
            if tx.currency == currency
        ),
        key=lambda row: (row[2], row[1]),
    )
    invoice_rows = sorted(
        (
            (
                RECORD_INVOICE,
                inv.invoice_id,
                inv.issue_date or default_date,
                f"{inv.supplier_name_raw or ''} {inv.invoice_number or inv.invoice_id}".strip(),
                str(inv.total_gross_cents),
                inv.currency,
                "|".join(sorted(by_invoice.get(inv.invoice_id, ()))),
            )
            for inv in invoices
            if inv.currency == currency
        ),
        key=lambda row: (row[2], row[1]),
    )

    rows = bank_rows + invoice_rows
    if not rows:
        raise NoDataToExportError("ledgerCsv")

    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    writer.writerows(rows)

    logger.info("ledger_csv_rendered", extra={"row_count": len(rows), "currency": currency})
    return RenderedExport(
        filename=ledger_csv_filename(tenant_id, month_key),
        content_type=CSV_CONTENT_TYPE,
        content=buf.getvalue().removesuffix("\n").encode("utf-8"),
        row_count=len(rows),
    )
