"""Year resolution for the year-less dates found in brokerage history.

History text shows fills as ``M/D`` and expiries as ``M/D`` without a year.
Fills always lie in the past, expiries usually in the future, so the two are
resolved with opposite biases relative to today.
"""

import re
from datetime import date, datetime
from typing import Optional

MONTH_DAY_RE = re.compile(r"(\d+)/(\d+)")
TIME_RE = re.compile(r"(\d+):(\d+)\s+(AM|PM)", re.IGNORECASE)
ISO_DATE_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
LONG_DATE_RE = re.compile(r"([A-Za-z]+)\s+(\d+),\s+(\d+)")

MONTHS = ["jan", "feb", "mar", "apr", "may", "jun",
          "jul", "aug", "sep", "oct", "nov", "dec"]


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def resolve_fill_date(month: int, day: int, today: Optional[date] = None) -> Optional[date]:
    """A fill later in the calendar than today happened last year."""
    today = today or date.today()
    year = today.year
    if (month, day) > (today.month, today.day):
        year -= 1
    return _safe_date(year, month, day)


def resolve_expiry_date(month: int, day: int, today: Optional[date] = None) -> Optional[date]:
    """An expiry earlier in the calendar than today is next year's."""
    today = today or date.today()
    year = today.year
    if (month, day) < (today.month, today.day):
        year += 1
    return _safe_date(year, month, day)


def parse_fill_datetime(date_text: str, time_text: str, today: Optional[date] = None) -> datetime:
    """Resolve a ``M/D`` + ``H:MM AM/PM`` fill stamp to a datetime.

    Unreadable dates sort first: they resolve to January 1 of this year.
    """
    today = today or date.today()
    match = MONTH_DAY_RE.search(date_text or "")
    resolved = None
    if match:
        resolved = resolve_fill_date(int(match.group(1)), int(match.group(2)), today)
    if resolved is None:
        return datetime(today.year, 1, 1)

    hours, minutes = 0, 0
    time_match = TIME_RE.search(time_text or "")
    if time_match:
        hours = int(time_match.group(1))
        minutes = int(time_match.group(2))
        period = time_match.group(3).upper()
        if period == "PM" and hours != 12:
            hours += 12
        if period == "AM" and hours == 12:
            hours = 0
        if hours > 23 or minutes > 59:
            hours, minutes = 0, 0

    return datetime(resolved.year, resolved.month, resolved.day, hours, minutes)


def parse_history_expiry(expiry: str, today: Optional[date] = None) -> Optional[date]:
    match = MONTH_DAY_RE.search(expiry or "")
    if not match:
        return None
    return resolve_expiry_date(int(match.group(1)), int(match.group(2)), today)


def parse_feed_expiry(expiry: Optional[str]) -> Optional[date]:
    """Parse a feed expiry given as ``YYYY-MM-DD`` or ``Mon D, YYYY``."""
    if not expiry:
        return None

    iso = ISO_DATE_RE.search(expiry)
    if iso:
        return _safe_date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))

    match = LONG_DATE_RE.search(expiry)
    if not match:
        return None
    month_name = match.group(1).lower()[:3]
    if month_name not in MONTHS:
        return None
    year = int(match.group(3))
    if year < 100:
        year += 2000
    return _safe_date(year, MONTHS.index(month_name) + 1, int(match.group(2)))


def parse_feed_date(value: str) -> Optional[date]:
    """Calendar date of a feed transaction (first ten characters, ISO)."""
    iso = ISO_DATE_RE.match((value or "")[:10])
    if not iso:
        return None
    return _safe_date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))


def days_between(a: date, b: date) -> int:
    return abs((a - b).days)
