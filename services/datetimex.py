# services/datetimex.py
from __future__ import annotations
from datetime import datetime, timezone

from dateutil import parser as dtparse


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone=True columns
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_iso_to_utc(s: str | None) -> datetime | None:
    """
    Parse an ISO-8601 timestamp ("2025-01-20T10:00:00Z", "...+09:00") into an
    aware UTC datetime. Naive input is taken as UTC. Returns None on garbage.
    """
    if not s or not isinstance(s, str):
        return None
    try:
        dt = dtparse.isoparse(s.strip())
    except (ValueError, OverflowError):
        return None
    return as_utc(dt)
