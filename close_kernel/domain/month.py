"""
Month -- Calendar month value object for period keys.

A Month is the unit of closing: it names the period (``YYYY-MM``), its
first and last day (``YYYY-MM-DD``), and supports month arithmetic.
Years are limited to 1900..2100.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date

from close_kernel.exceptions import InvalidDateError, InvalidPeriodError

MIN_YEAR = 1900
MAX_YEAR = 2100

_MONTH_KEY = re.compile(r"^(\d{4})-(\d{2})$")
_DATE_KEY = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


@dataclass(frozen=True, slots=True, order=True)
class Month:
    """
    Immutable calendar month.

    Guarantees:
        - ``MIN_YEAR <= year <= MAX_YEAR`` and ``1 <= month <= 12``.
        - Ordering is chronological.
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        if isinstance(self.year, bool) or not isinstance(self.year, int):
            raise InvalidPeriodError(self.year, "year must be an integer")
        if isinstance(self.month, bool) or not isinstance(self.month, int):
            raise InvalidPeriodError(self.month, "month must be an integer")
        if not MIN_YEAR <= self.year <= MAX_YEAR:
            raise InvalidPeriodError(self.year, f"year out of range {MIN_YEAR}-{MAX_YEAR}")
        if not 1 <= self.month <= 12:
            raise InvalidPeriodError(self.month, "month out of range 1-12")

    @classmethod
    def parse(cls, key: str) -> Month:
        """Parse a ``YYYY-MM`` key."""
        match = _MONTH_KEY.match(key) if isinstance(key, str) else None
        if match is None:
            raise InvalidPeriodError(key, "expected YYYY-MM")
        return cls(int(match.group(1)), int(match.group(2)))

    @classmethod
    def from_date(cls, value: str | date) -> Month:
        """Month containing a ``YYYY-MM-DD`` string or a date."""
        parsed = parse_date_key(value) if isinstance(value, str) else value
        return cls(parsed.year, parsed.month)

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def days(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    @property
    def start(self) -> str:
        return f"{self.key}-01"

    @property
    def end(self) -> str:
        return f"{self.key}-{self.days:02d}"

    def add(self, months: int) -> Month:
        index = self.year * 12 + (self.month - 1) + months
        return Month(index // 12, index % 12 + 1)

    def subtract(self, months: int) -> Month:
        return self.add(-months)

    def next(self) -> Month:
        return self.add(1)

    def previous(self) -> Month:
        return self.add(-1)

    def compare(self, other: Month) -> int:
        """Return -1, 0 or 1."""
        return (self > other) - (self < other)

    def __str__(self) -> str:
        return self.key


def parse_date_key(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string."""
    match = _DATE_KEY.match(value) if isinstance(value, str) else None
    if match is None:
        raise InvalidDateError(value)
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError as exc:
        raise InvalidDateError(value) from exc
