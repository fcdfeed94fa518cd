"""Timestamp helpers.

Log timestamps are stored as the ISO-8601 strings the agent wrote; they are
only turned into datetimes for arithmetic.
"""

from datetime import UTC, datetime


def _as_utc(dt: datetime) -> datetime:
    # Naive values are taken to be UTC already
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Read a log timestamp as an aware UTC datetime.

    Accepts ISO strings with a ``Z`` suffix or an explicit offset, and
    datetimes. Anything unreadable (empty string, garbage, None) gives None.

        >>> parse_timestamp("2024-01-15T10:30:00Z").hour
        10
    """
    if isinstance(value, datetime):
        return _as_utc(value)
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    return _as_utc(parsed)


def duration_ms(start: str | datetime | None, end: str | datetime | None) -> int | None:
    """Milliseconds between two timestamps, or None if either is missing or invalid."""
    start_dt = parse_timestamp(start)
    end_dt = parse_timestamp(end)
    if start_dt is None or end_dt is None:
        return None
    return round((end_dt - start_dt).total_seconds() * 1000)


def mtime_to_iso(mtime: float) -> str:
    """Render a file modification time (seconds since epoch) as an ISO string."""
    return datetime.fromtimestamp(mtime, tz=UTC).isoformat()


def now_utc() -> datetime:
    """Current time, timezone-aware in UTC."""
    return datetime.now(UTC)
