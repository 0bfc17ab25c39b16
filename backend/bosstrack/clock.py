"""Time sources and timestamp parsing.

All timestamps inside the core are naive datetimes in UTC, matching what
the database columns store.
"""

from datetime import datetime, timedelta, timezone

from bosstrack.errors import InvalidTimestamp


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_timestamp(value) -> datetime:
    """Accept a datetime or an ISO-8601 string (a trailing ``Z`` is allowed)."""
    if isinstance(value, datetime):
        return to_utc_naive(value)
    if not isinstance(value, str) or not value.strip():
        raise InvalidTimestamp(f"Not a timestamp: {value!r}")
    text = value.strip()
    if text.endswith('Z') or text.endswith('z'):
        text = text[:-1] + '+00:00'
    try:
        return to_utc_naive(datetime.fromisoformat(text))
    except ValueError as exc:
        raise InvalidTimestamp(f"Not a timestamp: {value!r}") from exc


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.current = to_utc_naive(start)

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta) -> datetime:
        self.current = self.current + timedelta(**delta)
        return self.current

    def set(self, value: datetime) -> None:
        self.current = to_utc_naive(value)
