"""
Summary PDF export -- a one-page month summary.

Architecture: close_engines -- pure rendering, returns bytes, writes nothing.

The document is a minimal PDF 1.4 file: catalog, page tree, one Letter page,
one content stream and the built-in Helvetica font.  Text is drawn as one
line per row, 16pt apart, starting at (72, 740).  Output is a pure function
of the inputs, so identical inputs give byte-identical files.

Invariants enforced:
    - xref offsets are byte offsets into the encoded file.
    - Backslashes and parentheses in text are escaped.
"""

from __future__ import annotations

from dataclasses import dataclass

from close_kernel.exceptions import MissingFieldError
from close_kernel.logging_config import get_logger
from close_engines.exports.base import RenderedExport
from close_engines.tracer import traced_engine

logger = get_logger("engines.exports.summary_pdf")

PDF_CONTENT_TYPE = "application/pdf"
SUMMARY_TITLE = "Month Close Summary"

_FONT_SIZE = 12
_START_X = 72
_START_Y = 740
_LINE_HEIGHT = 16

# Characters outside this codec cannot be drawn by the standard font.
_TEXT_ENCODING = "latin-1"


@dataclass(frozen=True, slots=True)
class SummaryFigures:
    """
    Figures printed on the summary page.

    Contract:
        Money values are integer cents in ``currency``.
    """

    tenant_id: str
    tenant_name: str
    month_key: str
    currency: str
    generated_at: str
    revenue_cents: int
    expense_cents: int
    vat_cents: int
    net_vat_cents: int
    unmatched_count: int
    bank_tx_mismatch_count: int
    invoice_mismatch_count: int
    final_accuracy_statement: str
    variance_resolved_statement: str


def format_cents(cents: int) -> str:
    """``-1234`` -> ``-12.34``."""
    sign = "-" if cents < 0 else ""
    whole, remainder = divmod(abs(cents), 100)
    return f"{sign}{whole}.{remainder:02d}"


def summary_pdf_filename(tenant_id: str, month_key: str) -> str:
    return f"summary_{month_key}_{tenant_id}.pdf"


def summary_lines(figures: SummaryFigures) -> list[str]:
    return [
        SUMMARY_TITLE,
        f"Tenant: {figures.tenant_name}",
        f"Month: {figures.month_key}",
        f"Currency: {figures.currency}",
        f"Generated: {figures.generated_at}",
        "",
        f"Revenue: {format_cents(figures.revenue_cents)}",
        f"Expenses: {format_cents(figures.expense_cents)}",
        f"VAT Total: {format_cents(figures.vat_cents)}",
        f"Net VAT: {format_cents(figures.net_vat_cents)}",
        f"Unmatched Count: {figures.unmatched_count}",
        f"Bank Tx Mismatches: {figures.bank_tx_mismatch_count}",
        f"Invoice Mismatches: {figures.invoice_mismatch_count}",
        "",
        figures.final_accuracy_statement,
        figures.variance_resolved_statement,
    ]


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def _content_stream(lines: list[str]) -> bytes:
    ops = ["BT", f"/F1 {_FONT_SIZE} Tf", f"{_START_X} {_START_Y} Td"]
    for i, line in enumerate(lines):
        if i:
            ops.append(f"0 -{_LINE_HEIGHT} Td")
        ops.append(f"({_escape(line)}) Tj")
    ops.append("ET")
    return "\n".join(ops).encode(_TEXT_ENCODING, errors="replace")


def build_simple_pdf(lines: list[str]) -> bytes:
    """Lay ``lines`` out on a single page and return the PDF file."""
    stream = _content_stream(lines)
    objects = [
        b"1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>\nendobj\n",
        b"2 0 obj\n<< /Type /Pages /Kids [3 0 R] /Count 1 >>\nendobj\n",
        (
            b"3 0 obj\n<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>\nendobj\n"
        ),
        b"4 0 obj\n<< /Length %d >>\nstream\n%s\nendstream\nendobj\n" % (len(stream), stream),
        b"5 0 obj\n<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>\nendobj\n",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for obj in objects:
        offsets.append(len(out))
        out += obj

    xref_start = len(out)
    xref = ["xref", f"0 {len(objects) + 1}", "0000000000 65535 f "]
    xref.extend(f"{offset:010d} 00000 n " for offset in offsets)
    trailer = [
        "trailer",
        f"<< /Size {len(objects) + 1} /Root 1 0 R >>",
        "startxref",
        str(xref_start),
        "%%EOF\n",
    ]
    out += ("\n".join(xref) + "\n" + "\n".join(trailer)).encode("ascii")
    return bytes(out)


@traced_engine("summary_pdf", "1.0", fingerprint_fields=("figures",))
def render_summary_pdf(*, figures: SummaryFigures) -> RenderedExport:
    if not figures.tenant_id:
        raise MissingFieldError("tenantId", context="summary export")
    if not figures.month_key:
        raise MissingFieldError("monthKey", context="summary export")

    content = build_simple_pdf(summary_lines(figures))
    logger.info("summary_pdf_rendered", extra={"size_bytes": len(content)})
    return RenderedExport(
        filename=summary_pdf_filename(figures.tenant_id, figures.month_key),
        content_type=PDF_CONTENT_TYPE,
        content=content,
    )
