"""
Timestamps are stored as naive UTC in every table and rendered with a
trailing 'Z' in API responses.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Read a client-supplied date or timestamp.

    Due dates and completion estimates usually arrive as "2026-12-01" and mean
    midnight UTC that day. Full timestamps may carry "Z" or a numeric offset;
    without one they are taken to be UTC already. Raises ValueError on
    anything else.
    """
    text = (value or "").strip()
    if not text:
        return None

    if len(text) == 10:
        day = date.fromisoformat(text)
        return datetime(day.year, day.month, day.day)

    if text[-1] in "zZ":
        text = f"{text[:-1]}+00:00"
    return _as_naive_utc(datetime.fromisoformat(text))


def to_utc_z(moment: Optional[datetime]) -> Optional[str]:
    if moment is None:
        return None
    stamp = _as_naive_utc(moment).replace(microsecond=0)
    return f"{stamp.isoformat()}Z"
