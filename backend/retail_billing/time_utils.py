# Overview: UTC timestamp helpers shared by models, services and query validation.

"""
All stored timestamps (sale_date, payment_date, ledger created_at, session
expiry) are naive UTC. Stock replay orders movements by created_at, so every
writer must take its clock from utcnow().
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as naive UTC, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a start_date / end_date query value into naive UTC.

    Blank input gives None. A bare "YYYY-MM-DD" is midnight UTC (callers
    widen an end_date to the end of that day). Offsets and a trailing "Z"
    are converted to UTC. Raises ValueError on anything else.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize a stored timestamp for JSON: second precision, trailing "Z"."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
