"""Recurrence rule validation and occurrence generation.

Everything here is pure: the same inputs always produce the same
occurrences, and nothing touches storage.
"""

import datetime as dt
from collections.abc import Iterator
from itertools import islice, takewhile

from dateutil.relativedelta import relativedelta

from cadence.domain.exceptions import InvalidRecurrenceRule
from cadence.domain.models import RecurrenceFrequency, RecurrenceRule, Weekday, as_utc

DEFAULT_OCCURRENCE_CEILING = 52

_WEEK = dt.timedelta(days=7)
_DAY = dt.timedelta(days=1)
_VALID_TAGS = frozenset(w.value for w in Weekday)


def validate_rule(rule: RecurrenceRule) -> None:
    """Reject rules that cannot be expanded.

    Raises:
        InvalidRecurrenceRule: On a missing frequency or start date, no
            bound at all, an end date not after the start date, a
            non-positive interval or count, or missing/unknown weekday
            tags on a weekly rule.
    """
    if rule.frequency is None:
        raise InvalidRecurrenceRule("Recurrence frequency is required")
    if rule.start_date is None:
        raise InvalidRecurrenceRule("Start date is required for recurrence pattern")
    if rule.end_date is None and rule.occurrence_count is None:
        raise InvalidRecurrenceRule("Either end date or occurrence count must be specified")
    if rule.end_date is not None and rule.end_date <= rule.start_date:
        raise InvalidRecurrenceRule("End date must be after start date")
    if rule.interval < 1:
        raise InvalidRecurrenceRule("Interval must be at least 1")
    if rule.occurrence_count is not None and rule.occurrence_count < 1:
        raise InvalidRecurrenceRule("Occurrence count must be at least 1")

    if rule.frequency in (RecurrenceFrequency.WEEKLY, RecurrenceFrequency.BIWEEKLY):
        if not rule.days_of_week:
            raise InvalidRecurrenceRule(
                "Days of week must be specified for weekly and biweekly patterns"
            )
    for tag in rule.days_of_week or []:
        if tag not in _VALID_TAGS:
            raise InvalidRecurrenceRule(f"Invalid day of week: {tag}")


def generate_occurrences(
    base_start: dt.datetime,
    rule: RecurrenceRule,
    max_occurrences: int,
    *,
    ceiling: int = DEFAULT_OCCURRENCE_CEILING,
) -> list[dt.datetime]:
    """Expand ``rule`` into occurrence start instants, in chronological order.

    At most ``min(rule.occurrence_count or max_occurrences, ceiling)``
    instants are returned, so open-ended rules always terminate; callers
    that need more re-invoke with a later ``base_start``. The first
    candidate is ``max(base_start, rule.start_date)`` and ``end_date`` is
    inclusive.

    Raises:
        InvalidRecurrenceRule: If the rule has no frequency.
    """
    if rule.frequency is None:
        raise InvalidRecurrenceRule("Recurrence frequency is required")

    limit = min(rule.occurrence_count or max_occurrences, ceiling)
    if limit <= 0:
        return []

    cursor = as_utc(base_start)
    if rule.start_date is not None and rule.start_date > cursor:
        cursor = rule.start_date
    interval = max(rule.interval, 1)

    candidates: Iterator[dt.datetime]
    if rule.frequency is RecurrenceFrequency.MONTHLY:
        candidates = _monthly(cursor, interval)
    elif rule.frequency is RecurrenceFrequency.BIWEEKLY:
        candidates = _weekly(cursor, _scan_days(rule, base_start), skip_weeks=interval)
    elif rule.frequency is RecurrenceFrequency.WEEKLY:
        candidates = _weekly(cursor, _scan_days(rule, base_start), skip_weeks=interval - 1)
    else:
        # CUSTOM has no richer semantics yet and advances like DAILY.
        candidates = _daily(cursor, interval)

    end_date = rule.end_date
    bounded = takewhile(lambda occurrence: end_date is None or occurrence <= end_date, candidates)
    return list(islice(bounded, limit))


def _scan_days(rule: RecurrenceRule, base_start: dt.datetime) -> frozenset[Weekday]:
    return rule.weekdays or frozenset({Weekday.of(as_utc(base_start))})


def _daily(anchor: dt.datetime, interval: int) -> Iterator[dt.datetime]:
    step = dt.timedelta(days=interval)
    current = anchor
    while True:
        yield current
        current += step


def _weekly(anchor: dt.datetime, days: frozenset[Weekday], skip_weeks: int) -> Iterator[dt.datetime]:
    """Scan day by day; after every 7-day window jump ``skip_weeks`` weeks ahead."""
    window_start = anchor
    current = anchor
    while True:
        if Weekday.of(current) in days:
            yield current
        current += _DAY
        if current - window_start >= _WEEK:
            current += _WEEK * skip_weeks
            window_start = current


def _monthly(anchor: dt.datetime, interval: int) -> Iterator[dt.datetime]:
    """Step whole months from the anchor; short months clamp to their last day."""
    step = 0
    while True:
        yield anchor + relativedelta(months=step * interval)
        step += 1
