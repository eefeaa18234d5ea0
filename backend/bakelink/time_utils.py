from __future__ import annotations

import re
from datetime import date, datetime, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MONTH_RE = re.compile(r"^\d{4}-\d{2}$")

TIMEZONE_HEADER = "X-Timezone"


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    ISO-8601 text to a naive UTC datetime (the storage form).

    Values without an offset are taken as UTC; "Z" and "+HH:MM" offsets are
    converted. Blank input gives None; malformed input raises ValueError.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z") or s.endswith("z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def as_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """Bring a value read back from a DateTime column into the naive UTC storage form."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_calendar_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a strict "YYYY-MM-DD" calendar date.

    Returns None when the text is not in that shape or names an impossible
    day (e.g. 2026-02-30).
    """
    if value is None:
        return None
    s = str(value).strip()
    if not DATE_RE.match(s):
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def month_bounds(value: Optional[str]) -> Optional[tuple[date, date]]:
    """"YYYY-MM" -> (first day of month, first day of next month)."""
    if value is None:
        return None
    s = str(value).strip()
    if not MONTH_RE.match(s):
        return None
    year, month = (int(part) for part in s.split("-"))
    if not 1 <= month <= 12:
        return None
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def resolve_timezone(name: Optional[str]) -> tzinfo:
    """
    Resolve an IANA zone name (typically from the X-Timezone header).

    Missing, blank, or unknown names fall back to UTC.
    """
    if not name or not name.strip():
        return timezone.utc
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Stored datetime as "YYYY-MM-DDTHH:MM:SSZ" (naive input is UTC)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def to_local_iso(dt: Optional[datetime], tz: Optional[tzinfo] = None) -> Optional[str]:
    """
    Render a stored (UTC-naive) datetime in the caller's timezone.

    UTC output keeps the trailing 'Z' form of to_utc_z.
    """
    if dt is None:
        return None
    if tz is None or tz is timezone.utc:
        return to_utc_z(dt)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    local = dt.astimezone(tz).replace(microsecond=0)
    return local.isoformat().replace("+00:00", "Z")


def format_date(value: Optional[date]) -> Optional[str]:
    # Calendar dates carry no zone and are never shifted
    if value is None:
        return None
    return value.isoformat()
