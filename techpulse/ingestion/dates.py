"""Published-date parsing and repair helpers."""

from __future__ import annotations

import calendar
import re
import time
from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser as dateutil_parser


MONTH_INDEX_BY_NAME = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

EXPLICIT_MONTH_DATE_RE = re.compile(
    r"\b(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|jun(?:e)?|jul(?:y)?|aug(?:ust)?"
    r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
    r"\s+(\d{1,2})(?:st|nd|rd|th)?(?:,\s*|\s+)(\d{4})\b",
    re.IGNORECASE,
)

MIN_YEAR = 1990
MAX_YEAR = 2100


def _safe_date(year: int, month: int, day: int) -> Optional[datetime]:
    try:
        return datetime(year, month, day, 12, 0, 0, tzinfo=timezone.utc)
    except ValueError:
        return None


def infer_explicit_date(text: str) -> Optional[datetime]:
    """First valid "Month D, YYYY" style date in the text, at noon UTC."""
    s = (text or "").strip()
    if not s:
        return None
    for m in EXPLICIT_MONTH_DATE_RE.finditer(s):
        month = MONTH_INDEX_BY_NAME.get(m.group(1).lower())
        if month is None:
            continue
        day = int(m.group(2))
        year = int(m.group(3))
        if year < MIN_YEAR or year > MAX_YEAR:
            continue
        parsed = _safe_date(year, month, day)
        if parsed:
            return parsed
    return None


def ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_feed_datetime(value: Any) -> Optional[datetime]:
    """Parse a feed timestamp (string, datetime or struct_time). Naive values are UTC."""
    if not value:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, time.struct_time):
        try:
            return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)
        except (OverflowError, ValueError):
            return None
    s = str(value).strip()
    if not s:
        return None
    try:
        return ensure_utc(dateutil_parser.parse(s))
    except (ValueError, OverflowError):
        return None


def hours_between(a: datetime, b: datetime) -> float:
    return abs((ensure_utc(a) - ensure_utc(b)).total_seconds()) / 3600.0
