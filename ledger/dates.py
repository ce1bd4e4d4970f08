"""
Date and month-key helpers.

A month key is "YYYY-MM" with a zero-padded month. Key equality is the
only test for "same bucket".
"""

import re
from datetime import date, datetime
from typing import Optional

_MONTH_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")
_ISO_DAY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_LEGACY_DAY_RE = re.compile(r"^\d{2}/\d{2}/\d{4}$")


def month_key(d: date) -> str:
    """Bucket key for the month containing `d`."""
    return f"{d.year:04d}-{d.month:02d}"


def parse_month_key(key: str) -> tuple[int, int]:
    """Split a month key into (year, month). Raises ValueError if malformed."""
    match = _MONTH_KEY_RE.match(key)
    if not match:
        raise ValueError(f"Not a month key: {key!r}")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"Month out of range in {key!r}")
    return year, month


def month_start(key: str) -> date:
    """First calendar day of the month."""
    year, month = parse_month_key(key)
    return date(year, month, 1)


def shift_month(key: str, delta: int) -> str:
    """Month key `delta` months after `key` (before, if negative)."""
    year, month = parse_month_key(key)
    index = year * 12 + (month - 1) + delta
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def month_of_year(key: str, month_number: int) -> str:
    """Same year as `key`, month `month_number` (1-12)."""
    if not 1 <= month_number <= 12:
        raise ValueError(f"Month number out of range: {month_number}")
    year, _ = parse_month_key(key)
    return f"{year:04d}-{month_number:02d}"


def months_ending_at(key: str, count: int) -> list[str]:
    """The `count` month keys ending at `key` inclusive, oldest first."""
    return [shift_month(key, -offset) for offset in range(count - 1, -1, -1)]


def is_past_month(month: str, current_month: str) -> bool:
    """True when `month` is strictly before `current_month`."""
    return parse_month_key(month) < parse_month_key(current_month)


def parse_day(value: Optional[str]) -> Optional[date]:
    """
    Parse a day-precision date as entered by the user.

    Accepts YYYY-MM-DD and the older DD/MM/YYYY form. Returns None for
    anything else, including impossible dates like 31/02/2024.
    """
    if not value:
        return None
    value = value.strip()
    if _ISO_DAY_RE.match(value):
        fmt = "%Y-%m-%d"
    elif _LEGACY_DAY_RE.match(value):
        fmt = "%d/%m/%Y"
    else:
        return None
    try:
        parsed = datetime.strptime(value, fmt).date()
    except ValueError:
        return None
    if parsed.year <= 1900:
        return None
    return parsed
