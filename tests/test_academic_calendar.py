"""Unit tests for the academic calendar helpers."""

import logging
from datetime import date, datetime

import pytest

from fee_ledger.core import academic_calendar
from fee_ledger.core.exceptions import ValidationError


def test_months_of_starts_in_april_and_wraps() -> None:
    months = academic_calendar.months_of("2024-25")
    assert months == [
        "2024-04", "2024-05", "2024-06", "2024-07", "2024-08", "2024-09",
        "2024-10", "2024-11", "2024-12", "2025-01", "2025-02", "2025-03",
    ]


def test_months_of_custom_start_month() -> None:
    months = academic_calendar.months_of("2024-25", start_month=6)
    assert months[0] == "2024-06"
    assert months[-1] == "2025-05"
    assert len(months) == 12


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024-25", (2024, 2025)),
        ("2024-2025", (2024, 2025)),
        ("2024/25", (2024, 2025)),
        ("AY 2099-00", (2099, 2100)),
    ],
)
def test_parse_academic_year(value: str, expected: tuple) -> None:
    span = academic_calendar.parse_academic_year(value)
    assert (span.start_year, span.end_year) == expected
    assert span.fallback is False


def test_unparseable_year_falls_back_and_warns(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="fee_ledger.core.academic_calendar"):
        span = academic_calendar.parse_academic_year("next year", today=date(2024, 7, 1))
    assert (span.start_year, span.end_year) == (2024, 2025)
    assert span.fallback is True
    assert "Unparseable academic year" in caplog.text


def test_require_year_code_rejects_garbage() -> None:
    with pytest.raises(ValidationError):
        academic_calendar.require_year_code("not-a-year")


def test_current_year_code_switches_at_start_month() -> None:
    assert academic_calendar.current_year_code(datetime(2025, 3, 31, 23, 59)) == "2024-25"
    assert academic_calendar.current_year_code(datetime(2025, 4, 1)) == "2025-26"
    assert academic_calendar.current_year_code(date(2024, 12, 15)) == "2024-25"


def test_current_month_key() -> None:
    assert academic_calendar.current_month_key(date(2025, 1, 9)) == "2025-01"


def test_academic_year_of_month() -> None:
    assert academic_calendar.academic_year_of_month("2025-02") == "2024-25"
    assert academic_calendar.academic_year_of_month("2025-04") == "2025-26"


def test_month_position_outside_year() -> None:
    assert academic_calendar.month_position("2024-25", "2025-03") == 11
    assert academic_calendar.month_position("2024-25", "2025-04") == -1


def test_month_labels() -> None:
    assert academic_calendar.format_month_label("2024-04") == "April 2024"
    assert academic_calendar.format_month_label(None) == "-"
    assert academic_calendar.month_abbr("2025-01") == "Jan"
    assert academic_calendar.first_day_of_month("2024-11") == date(2024, 11, 1)


@pytest.mark.parametrize("key", ["2024-13", "2024-4", "April", ""])
def test_parse_month_key_rejects_invalid(key: str) -> None:
    with pytest.raises(ValidationError):
        academic_calendar.parse_month_key(key)
