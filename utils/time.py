"""Time helpers."""

from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Return a naive UTC datetime for storage in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_played_at(raw: str | None) -> datetime | None:
    """Parse the played-at field from a form; None when blank or unparseable.

    Accepts ``datetime-local`` input values (``2024-05-01T19:30``), full ISO
    timestamps with an offset or trailing ``Z``, bare dates and a couple of
    US-style date formats.
    """
    if not raw or not raw.strip():
        return None
    raw_value = raw.strip()
    if raw_value.endswith("Z"):
        raw_value = raw_value[:-1] + "+00:00"
    try:
        if len(raw_value) <= 10:
            return datetime.combine(date.fromisoformat(raw_value), datetime.min.time())
        return to_naive_utc(datetime.fromisoformat(raw_value))
    except ValueError:
        pass
    for fmt in ("%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d"):
        try:
            return datetime.strptime(raw_value, fmt)
        except ValueError:
            continue
    return None
