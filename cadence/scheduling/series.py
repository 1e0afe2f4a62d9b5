import datetime as dt
from typing import Callable

from loguru import logger

from cadence.config import SchedulingConfig
from cadence.domain.exceptions import PatternNotFound
from cadence.domain.models import (
    GroupAppointment,
    IndividualAppointment,
    OccurrenceFailure,
    PatternUpdate,
    RecurrencePattern,
    RecurrenceRule,
    RecurrenceRuleUpdate,
    ResourceKind,
    SeriesResult,
    TimeInterval,
)
from cadence.scheduling.conflicts import ConflictChecker, check_group_size
from cadence.scheduling.intervals import shift
from cadence.scheduling.recurrence import generate_occurrences, validate_rule
from cadence.scheduling.time_helpers import utc_now
from cadence.store.errors import store_errors
from cadence.store.ports import AppointmentStore, RecurrencePatternStore


class RecurrenceExpander:
    """Turns a recurrence rule plus an appointment template into a series.

    Series creation is best effort: an occurrence that conflicts or fails
    to persist is logged, recorded in ``SeriesResult.failures`` and
    skipped, and the remaining occurrences are still booked. Nothing is
    rolled back, including when the caller cancels mid-series.
    """

    def __init__(
        self,
        appointments: AppointmentStore,
        patterns: RecurrencePatternStore,
        checker: ConflictChecker | None = None,
        *,
        config: SchedulingConfig | None = None,
        clock: Callable[[], dt.datetime] = utc_now,
    ) -> None:
        self._appointments = appointments
        self._patterns = patterns
        self._checker = checker
        self._config = config or SchedulingConfig()
        self._clock = clock

    async def create_series(
        self,
        template: IndividualAppointment | GroupAppointment,
        rule: RecurrenceRule,
        actor_id: str | None = None,
    ) -> SeriesResult:
        """Persist a pattern and book one appointment per occurrence.

        Raises:
            InvalidRecurrenceRule: If the rule fails validation.
            InvalidAppointmentTemplate: If the template has no usable window.
            CapacityError: If a group template lists more participants than it allows.
            ResourceNotFound: If a referenced therapist, room or equipment is missing.
        """
        validate_rule(rule)
        base = template.window()
        if isinstance(template, GroupAppointment):
            check_group_size(len(template.participants), template.max_participants)
        await self._verify_resources(template)

        with store_errors("Creating recurrence pattern"):
            pattern = await self._patterns.create(rule)
        logger.info(
            "Created recurrence pattern {}: frequency={}, interval={}",
            pattern.pattern_id,
            pattern.frequency.value,
            pattern.interval,
        )

        return await self._expand(pattern, template, base, actor_id)

    async def get_pattern(self, pattern_id: str) -> RecurrencePattern:
        with store_errors("Pattern lookup"):
            pattern = await self._patterns.get(pattern_id)
        if pattern is None:
            raise PatternNotFound(pattern_id)
        return pattern

    async def update_pattern(
        self,
        pattern_id: str,
        changes: RecurrenceRuleUpdate,
        regenerate_future: bool = False,
    ) -> PatternUpdate:
        """Apply rule changes, optionally rebuilding every appointment from now on.

        Regeneration deletes the linked appointments starting at or after
        now, rebuilds a template from the earliest of them and books the
        updated rule under the same pattern, counting occurrences afresh
        from that earliest slot. Earlier appointments are never touched.

        Raises:
            InvalidAppointmentTemplate: If the earliest future appointment
                cannot be turned back into a template; nothing is deleted.
        """
        current = await self.get_pattern(pattern_id)
        rule = changes.apply_to(current.as_rule())
        validate_rule(rule)

        with store_errors("Updating recurrence pattern"):
            pattern = await self._patterns.update(pattern_id, rule)
        logger.info("Updated recurrence pattern {}", pattern_id)

        if not regenerate_future:
            return PatternUpdate(pattern=pattern)

        now = self._clock()
        with store_errors("Pattern appointment lookup"):
            future = await self._appointments.find_by_pattern(pattern_id, starting_at=now)
        if not future:
            logger.info("Pattern {} has no future appointments to regenerate", pattern_id)
            return PatternUpdate(pattern=pattern, regenerated=SeriesResult(pattern_id=pattern_id))

        future.sort(key=lambda a: a.interval.start)
        earliest = future[0]
        template = earliest.to_template()
        base = template.window()

        with store_errors("Deleting future appointments"):
            for appointment in future:
                await self._appointments.delete(appointment.appointment_id)
        logger.info("Deleted {} future appointment(s) of pattern {}", len(future), pattern_id)

        regenerated = await self._expand(pattern, template, base, earliest.created_by)
        return PatternUpdate(pattern=pattern, regenerated=regenerated)

    async def delete_pattern(self, pattern_id: str, cascade_delete: bool = False) -> None:
        """Delete a pattern, either with all its appointments or leaving them standalone."""
        await self.get_pattern(pattern_id)

        with store_errors("Deleting recurrence pattern"):
            linked = await self._appointments.find_by_pattern(pattern_id)
            for appointment in linked:
                if cascade_delete:
                    await self._appointments.delete(appointment.appointment_id)
                else:
                    await self._appointments.update(
                        appointment.appointment_id,
                        {"recurrence_pattern_id": None, "is_recurring": False},
                    )
            await self._patterns.delete(pattern_id)

        logger.info(
            "Deleted recurrence pattern {} ({} appointment(s) {})",
            pattern_id,
            len(linked),
            "deleted" if cascade_delete else "unlinked",
        )

    async def _expand(
        self,
        pattern: RecurrencePattern,
        template: IndividualAppointment | GroupAppointment,
        base: TimeInterval,
        actor_id: str | None,
    ) -> SeriesResult:
        rule = pattern.as_rule()
        starts = generate_occurrences(
            base.start,
            rule,
            rule.occurrence_count or self._config.default_series_occurrences,
            ceiling=self._config.max_occurrence_ceiling,
        )

        result = SeriesResult(pattern_id=pattern.pattern_id)
        for start in starts:
            appointment = template.to_new_appointment(
                shift(base, start), pattern_id=pattern.pattern_id, created_by=actor_id
            )
            try:
                if self._checker is not None and self._config.check_series_conflicts:
                    await self._checker.ensure_bookable(appointment)
                created = await self._appointments.create(appointment)
            except Exception as exc:
                logger.warning(
                    "Skipping occurrence at {} of pattern {}: {}", start, pattern.pattern_id, exc
                )
                result.failures.append(OccurrenceFailure(start=start, reason=str(exc)))
                continue
            result.appointment_ids.append(created.appointment_id)

        if result.partial:
            logger.warning(
                "Pattern {} partially booked: {} of {} occurrence(s) created",
                pattern.pattern_id,
                len(result.appointment_ids),
                len(starts),
            )
        else:
            logger.info(
                "Pattern {} booked: {} occurrence(s) created",
                pattern.pattern_id,
                len(result.appointment_ids),
            )
        return result

    async def _verify_resources(self, template: IndividualAppointment | GroupAppointment) -> None:
        if self._checker is None:
            return
        await self._checker.resource_name(ResourceKind.THERAPIST, template.therapist_id)
        if template.room_id:
            await self._checker.resource_name(ResourceKind.ROOM, template.room_id)
        for usage in template.equipment:
            await self._checker.resource_name(ResourceKind.EQUIPMENT_UNIT, usage.equipment_id)
