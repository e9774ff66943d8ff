"""Export generators: ledger CSV and summary PDF."""

from close_engines.exports.base import RenderedExport
from close_engines.exports.ledger_csv import render_ledger_csv
from close_engines.exports.summary_pdf import SummaryFigures, format_cents, render_summary_pdf

__all__ = [
    "RenderedExport",
    "SummaryFigures",
    "format_cents",
    "render_ledger_csv",
    "render_summary_pdf",
]
