import datetime as dt

import pytest

from cadence.domain.exceptions import ValidationError
from cadence.domain.models import TimeInterval
from cadence.scheduling.intervals import shift, validate_booking_window

NOW = dt.datetime(2025, 3, 1, 12, tzinfo=dt.timezone.utc)


def _utc(*args: int) -> dt.datetime:
    return dt.datetime(*args, tzinfo=dt.timezone.utc)


def test_shift_keeps_duration() -> None:
    interval = TimeInterval(start=_utc(2025, 4, 1, 14), end=_utc(2025, 4, 1, 15, 30))

    moved = shift(interval, _utc(2025, 4, 8, 9))

    assert moved == TimeInterval(start=_utc(2025, 4, 8, 9), end=_utc(2025, 4, 8, 10, 30))


def test_valid_window() -> None:
    interval = validate_booking_window(
        _utc(2025, 4, 1, 14), _utc(2025, 4, 1, 15), now=NOW, min_minutes=15, max_minutes=240
    )

    assert interval.duration == dt.timedelta(hours=1)


def test_naive_bounds_are_read_as_utc() -> None:
    interval = validate_booking_window(
        dt.datetime(2025, 4, 1, 14),
        dt.datetime(2025, 4, 1, 15),
        now=NOW,
        min_minutes=15,
        max_minutes=240,
    )

    assert interval.start == _utc(2025, 4, 1, 14)


def test_duration_bounds_are_inclusive() -> None:
    validate_booking_window(
        _utc(2025, 4, 1, 14), _utc(2025, 4, 1, 14, 15), now=NOW, min_minutes=15, max_minutes=240
    )
    validate_booking_window(
        _utc(2025, 4, 1, 10), _utc(2025, 4, 1, 14), now=NOW, min_minutes=15, max_minutes=240
    )


def test_past_allowed_when_configured() -> None:
    interval = validate_booking_window(
        _utc(2025, 1, 1, 14),
        _utc(2025, 1, 1, 15),
        now=NOW,
        min_minutes=15,
        max_minutes=240,
        allow_past=True,
    )

    assert interval.start == _utc(2025, 1, 1, 14)


@pytest.mark.parametrize(
    ("start", "end", "message"),
    [
        (_utc(2025, 4, 1, 14), None, "Start and end times are required"),
        (_utc(2025, 4, 1, 14), _utc(2025, 4, 1, 14), "End time must be after start time"),
        (_utc(2025, 3, 1, 11), _utc(2025, 3, 1, 13), "cannot be scheduled in the past"),
        (_utc(2025, 4, 1, 14), _utc(2025, 4, 1, 14, 14), "at least 15 minutes"),
        (_utc(2025, 4, 1, 10), _utc(2025, 4, 1, 14, 1), "cannot exceed 240 minutes"),
    ],
    ids=["missing-end", "empty", "started-already", "too-short", "too-long"],
)
def test_invalid_windows(start: dt.datetime, end: dt.datetime | None, message: str) -> None:
    with pytest.raises(ValidationError, match=message):
        validate_booking_window(start, end, now=NOW, min_minutes=15, max_minutes=240)
