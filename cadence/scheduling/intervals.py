import datetime as dt

from cadence.domain.exceptions import ValidationError
from cadence.domain.models import TimeInterval, as_utc


def shift(interval: TimeInterval, start: dt.datetime) -> TimeInterval:
    """Move ``interval`` so it begins at ``start``, keeping its duration."""
    return TimeInterval(start=start, end=start + interval.duration)


def validate_booking_window(
    start: dt.datetime | None,
    end: dt.datetime | None,
    *,
    now: dt.datetime,
    min_minutes: int,
    max_minutes: int,
    allow_past: bool = False,
) -> TimeInterval:
    """Check a requested booking window and return it as an interval.

    Raises:
        ValidationError: If either bound is missing, ``start >= end``, the
            start lies in the past, or the duration is outside
            ``[min_minutes, max_minutes]``.
    """
    if start is None or end is None:
        raise ValidationError("Start and end times are required")

    start, end = as_utc(start), as_utc(end)
    if start >= end:
        raise ValidationError("End time must be after start time")
    if not allow_past and start < now:
        raise ValidationError("Appointments cannot be scheduled in the past")

    minutes = (end - start) / dt.timedelta(minutes=1)
    if minutes < min_minutes:
        raise ValidationError(f"Appointment duration must be at least {min_minutes} minutes")
    if minutes > max_minutes:
        raise ValidationError(f"Appointment duration cannot exceed {max_minutes} minutes")

    return TimeInterval(start=start, end=end)
