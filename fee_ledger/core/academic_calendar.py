"""
Academic calendar helpers. Pure functions; "now" is always passed in by the caller.

An academic year code looks like "2024-25" and covers twelve MonthKeys ("YYYY-MM")
starting at the configured start month (April by default) and wrapping into the
next calendar year.
"""

import calendar
import logging
import re
from datetime import date, datetime
from typing import List, NamedTuple, Optional, Tuple, Union

from fee_ledger.core.config import settings
from fee_ledger.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

_YEAR_CODE_RE = re.compile(r"(\d{4})\D*(\d{2,4})")
_MONTH_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")


class AcademicYearSpan(NamedTuple):
    start_year: int
    end_year: int
    # True when the input could not be parsed and the current-year default was used
    fallback: bool = False


def _start_month(start_month: Optional[int]) -> int:
    return start_month if start_month is not None else settings.academic_year_start_month


def parse_academic_year(value: Optional[str], today: Optional[date] = None) -> AcademicYearSpan:
    """
    Parse "2024-25", "2024-2025", "2024/25" and similar into start/end years.
    Unparseable input falls back to (current calendar year, next year) and is logged.
    """
    match = _YEAR_CODE_RE.search(value) if value else None
    if not match:
        year = (today or date.today()).year
        logger.warning(
            "Unparseable academic year %r; falling back to %s-%s", value, year, year + 1
        )
        return AcademicYearSpan(year, year + 1, fallback=True)

    start_year = int(match.group(1))
    raw_end = match.group(2)
    if len(raw_end) == 2:
        end_year = int(f"{str(start_year + 1)[:2]}{raw_end}")
    elif len(raw_end) == 4:
        end_year = int(raw_end)
    else:
        # 3 digits: "2024-202" style truncation; treat as unparseable tail
        logger.warning("Academic year %r has a malformed end year; assuming %s", value, start_year + 1)
        end_year = start_year + 1
    return AcademicYearSpan(start_year, end_year)


def require_year_code(value: Optional[str]) -> AcademicYearSpan:
    """Strict variant used by the ledger: an unparseable code is a client error, not a default."""
    if not value or not _YEAR_CODE_RE.search(value):
        raise ValidationError(
            "Invalid academic year code",
            [{"field": "academic_year", "message": f"expected a code like 2024-25, got {value!r}"}],
        )
    return parse_academic_year(value)


def format_year_code(start_year: int) -> str:
    return f"{start_year}-{str(start_year + 1)[-2:]}"


def month_key(year: int, month: int) -> str:
    return f"{year}-{month:02d}"


def parse_month_key(key: str) -> Tuple[int, int]:
    match = _MONTH_KEY_RE.match(key or "")
    if not match or not 1 <= int(match.group(2)) <= 12:
        raise ValidationError(
            "Invalid month key",
            [{"field": "month", "message": f"expected YYYY-MM, got {key!r}"}],
        )
    return int(match.group(1)), int(match.group(2))


def months_of(year_code: Optional[str], start_month: Optional[int] = None) -> List[str]:
    """Ordered MonthKeys of an academic year, e.g. 2024-04 .. 2024-12, 2025-01 .. 2025-03."""
    start = _start_month(start_month)
    span = parse_academic_year(year_code)
    months = [month_key(span.start_year, m) for m in range(start, 13)]
    months.extend(month_key(span.end_year, m) for m in range(1, start))
    return months


def current_year_code(now: Union[date, datetime], start_month: Optional[int] = None) -> str:
    start = _start_month(start_month)
    start_year = now.year if now.month >= start else now.year - 1
    return format_year_code(start_year)


def current_month_key(now: Union[date, datetime]) -> str:
    return month_key(now.year, now.month)


def academic_year_of_month(key: str, start_month: Optional[int] = None) -> str:
    year, month = parse_month_key(key)
    start = _start_month(start_month)
    return format_year_code(year if month >= start else year - 1)


def month_position(year_code: str, key: str, start_month: Optional[int] = None) -> int:
    """Index of key within the year's sequence; -1 when the month is outside that year."""
    try:
        return months_of(year_code, start_month).index(key)
    except ValueError:
        return -1


def month_abbr(key: str) -> str:
    _, month = parse_month_key(key)
    return calendar.month_abbr[month]


def format_month_label(key: Optional[str]) -> str:
    """'2024-04' -> 'April 2024'."""
    if not key:
        return "-"
    year, month = parse_month_key(key)
    return f"{calendar.month_name[month]} {year}"


def first_day_of_month(key: str) -> date:
    year, month = parse_month_key(key)
    return date(year, month, 1)
