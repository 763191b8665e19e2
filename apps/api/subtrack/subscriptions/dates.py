"""Month-year (``MM-YYYY``) values.

Only the calendar month and year are meaningful. Parsed values are pinned to
the first day of the month so they compare correctly as SQL ``DATE`` columns.
"""
from __future__ import annotations

import re
from datetime import date

from subtrack.subscriptions.errors import InvalidDateFormatError


MONTH_YEAR_FORMAT = "MM-YYYY"

_MONTH_YEAR_RE = re.compile(r"(0[1-9]|1[0-2])-([0-9]{4})")


def parse_month_year(value: str, *, field: str, operation: str = "parse") -> date:
    match = _MONTH_YEAR_RE.fullmatch(value or "")
    if match is None:
        raise InvalidDateFormatError(field, value, operation=operation)
    month, year = int(match.group(1)), int(match.group(2))
    if year < 1:
        raise InvalidDateFormatError(field, value, operation=operation)
    return date(year, month, 1)


def parse_optional_month_year(value: str | None, *, field: str, operation: str = "parse") -> date | None:
    if not value:
        return None
    return parse_month_year(value, field=field, operation=operation)


def format_month_year(value: date) -> str:
    return f"{value.month:02d}-{value.year:04d}"


def format_optional_month_year(value: date | None) -> str | None:
    if value is None:
        return None
    return format_month_year(value)
