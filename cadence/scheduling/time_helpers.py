import datetime as dt

from dateutil.parser import isoparse

from cadence.domain.models import TimeInterval, as_utc


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def parse_instant(value: str) -> dt.datetime:
    """Parse an ISO-8601 string such as ``2025-04-01T14:00:00Z`` into a UTC instant.

    Offsets are converted to UTC; strings without an offset are read as UTC.

    Raises:
        ValueError: If ``value`` is not ISO-8601.
    """
    return as_utc(isoparse(value))


def format_instant(value: dt.datetime) -> str:
    """Format a UTC instant as ``2025-04-01T14:00:00Z``."""
    return as_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def format_window(interval: TimeInterval) -> str:
    """Render ``2025-04-01 14:00-15:00 UTC`` (the end carries its date when it differs)."""
    start, end = interval.start, interval.end
    if start.date() == end.date():
        return f"{start:%Y-%m-%d %H:%M}-{end:%H:%M} UTC"
    return f"{start:%Y-%m-%d %H:%M} - {end:%Y-%m-%d %H:%M} UTC"
