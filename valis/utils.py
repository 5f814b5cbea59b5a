"""
Date utilities for VALIS.

Parsing of user-entered dates and time windows such as "3d" or "1m".
"""

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

DATE_FORMATS = ["%Y-%m-%d", "%d/%m/%Y", "%d.%m.%Y", "%d%m%y", "%d.%m.%y", "%d/%m/%y"]

WINDOW_PATTERN = re.compile(r"^\s*(\d+)\s*([dwmy])\s*$", re.IGNORECASE)


def date_from_str(value: str) -> Optional[date]:
    """
    Parse a date, trying each supported format in turn.

    Recognized formats: yyyy-mm-dd, dd/mm/yyyy, dd.mm.yyyy, ddmmyy,
    dd.mm.yy and dd/mm/yy.

    Returns:
        The parsed date, or None if no format matches
    """
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    return None


def add_months(day: date, months: int) -> date:
    """Shift a date by whole months, clamping to the end of shorter months."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


@dataclass(frozen=True)
class TimeWindow:
    """
    A span of days, weeks, months or years.
    """

    amount: int
    unit: str

    @classmethod
    def parse(cls, value: str) -> "TimeWindow":
        """
        Parse a window such as "1d", "2w", "3m" or "1y".

        Raises:
            ValueError: If the value is not a valid window
        """
        match = WINDOW_PATTERN.match(value)
        if not match:
            raise ValueError(f"Invalid time window: {value!r} (expected e.g. 3d, 2w, 1m, 1y)")
        return cls(amount=int(match.group(1)), unit=match.group(2).lower())

    def end(self, start: date) -> date:
        if self.unit == "d":
            return start + timedelta(days=self.amount)
        if self.unit == "w":
            return start + timedelta(weeks=self.amount)
        if self.unit == "m":
            return add_months(start, self.amount)
        return add_months(start, 12 * self.amount)

    def range(self, start: date) -> Tuple[date, date]:
        """The half-open range [start, end) covered by the window."""
        return start, self.end(start)

    def __str__(self) -> str:
        return f"{self.amount}{self.unit}"


def human_date(day: date) -> str:
    """Pretty print a date, e.g. 'Mon, 01.01.24'."""
    return day.strftime("%a, %d.%m.%y")
