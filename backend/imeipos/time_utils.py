# Overview: UTC time helpers; every stored timestamp is naive UTC.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc_naive(dt: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are taken as UTC already."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a sale/payment/session timestamp sent by a client.

    - None / "" -> None
    - "YYYY-MM-DD" is midnight UTC of that business day
    - "...Z" or "...+/-HH:MM" is converted to UTC

    Raises ValueError on anything else.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return as_utc_naive(datetime.fromisoformat(s))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize for JSON as ISO-8601 with a trailing 'Z' (seconds precision)."""
    if dt is None:
        return None
    dt_utc = as_utc_naive(dt).replace(microsecond=0)
    return dt_utc.isoformat() + "Z"
