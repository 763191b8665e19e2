from __future__ import annotations

from datetime import date

import pytest

from subtrack.subscriptions.dates import (
    format_month_year,
    format_optional_month_year,
    parse_month_year,
    parse_optional_month_year,
)
from subtrack.subscriptions.errors import InvalidDateFormatError


def test_parse_pins_to_first_day_of_month() -> None:
    assert parse_month_year("07-2025", field="start_date") == date(2025, 7, 1)
    assert parse_month_year("12-2100", field="period_end") == date(2100, 12, 1)


@pytest.mark.parametrize(
    "value",
    ["01-2024", "06-2025", "10-1999", "12-2100", "03-0001", "09-9999"],
)
def test_parse_then_format_is_identity(value: str) -> None:
    assert format_month_year(parse_month_year(value, field="start_date")) == value


@pytest.mark.parametrize(
    "value",
    [
        "",
        "7-2025",
        "00-2025",
        "13-2025",
        "07-25",
        "07-02025",
        "2025-07",
        "07/2025",
        "07-2025 ",
        " 07-2025",
        "07-2025\n",
        "07-0000",
        "01-07-2025",
        "July 2025",
    ],
)
def test_parse_rejects_anything_but_two_digit_month_and_four_digit_year(value: str) -> None:
    with pytest.raises(InvalidDateFormatError) as exc_info:
        parse_month_year(value, field="start_date", operation="create")

    assert exc_info.value.field == "start_date"
    assert exc_info.value.value == value
    assert exc_info.value.operation == "create"


def test_optional_values_treat_empty_as_absent() -> None:
    assert parse_optional_month_year(None, field="end_date") is None
    assert parse_optional_month_year("", field="end_date") is None
    assert parse_optional_month_year("02-2026", field="end_date") == date(2026, 2, 1)
    assert format_optional_month_year(None) is None
    assert format_optional_month_year(date(2026, 2, 17)) == "02-2026"


def test_optional_value_still_validated_when_present() -> None:
    with pytest.raises(InvalidDateFormatError):
        parse_optional_month_year("2-2026", field="end_date")
