from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_utc_day(moment: Optional[datetime] = None) -> datetime:
    moment = moment or utcnow()
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def utc_day_window(moment: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Inclusive [start, end] bounds of the UTC calendar day containing moment."""
    start = start_of_utc_day(moment)
    return start, start + timedelta(days=1) - timedelta(microseconds=1)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 string into a UTC-naive datetime.

    - None / "" -> None
    - naive input is interpreted as UTC
    - "Z" and "+/-HH:MM" offsets are converted to UTC
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize to ISO-8601 with trailing 'Z'; naive values are treated as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
