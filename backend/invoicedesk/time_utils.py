from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a "YYYY-MM-DD" (or full ISO datetime) string into a date.

    - None / "" -> None
    - raises TypeError on non-string input, ValueError on strings that do not parse
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"Expected an ISO date string, got {type(value).__name__}")
    s = value.strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    if "T" in s:
        return datetime.fromisoformat(s).date()
    return date.fromisoformat(s)


def month_range(month: Optional[str], today: Optional[date] = None) -> tuple[date, date, str]:
    """
    Resolve a "YYYY-MM" string into (first_day, last_day, "YYYY-MM").

    Defaults to the current month when month is empty.
    """
    if month:
        year_str, month_str = month.split("-", 1)
        year, month_num = int(year_str), int(month_str)
        if not 1 <= month_num <= 12:
            raise ValueError(f"Invalid month: {month}")
    else:
        today = today or utcnow().date()
        year, month_num = today.year, today.month

    last_day = monthrange(year, month_num)[1]
    return date(year, month_num, 1), date(year, month_num, last_day), f"{year:04d}-{month_num:02d}"


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
