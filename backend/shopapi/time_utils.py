from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Current time in UTC as a naive datetime (how every timestamp column is stored)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: str | None) -> date | None:
    """
    Parse a calendar date.

    Accepts "YYYY-MM-DD" and full ISO timestamps ("1990-04-12T00:00:00Z"),
    keeping only the date part. None / "" -> None. Raises ValueError.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    if "T" in text:
        text = text.split("T", 1)[0]
    return date.fromisoformat(text)


def to_utc_z(dt: datetime | None) -> str | None:
    """Render a stored timestamp as ISO-8601 with a trailing Z (seconds precision)."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
