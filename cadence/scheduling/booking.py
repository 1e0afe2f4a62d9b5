import datetime as dt
from typing import Callable

from loguru import logger

from cadence.config import SchedulingConfig
from cadence.domain.exceptions import AppointmentNotFound, CapacityError, ResourceNotFound
from cadence.domain.models import (
    Appointment,
    AppointmentStatus,
    GroupAppointment,
    GroupParticipant,
    IndividualAppointment,
    TimeInterval,
)
from cadence.scheduling.conflicts import ConflictChecker, check_group_size
from cadence.scheduling.intervals import validate_booking_window
from cadence.scheduling.time_helpers import format_window, utc_now
from cadence.store.errors import store_errors
from cadence.store.ports import AppointmentStore, ResourceDirectory


class BookingService:
    """Direct booking of single appointments and changes to existing ones."""

    def __init__(
        self,
        appointments: AppointmentStore,
        resources: ResourceDirectory,
        checker: ConflictChecker,
        *,
        config: SchedulingConfig | None = None,
        clock: Callable[[], dt.datetime] = utc_now,
    ) -> None:
        self._appointments = appointments
        self._resources = resources
        self._checker = checker
        self._config = config or SchedulingConfig()
        self._clock = clock

    async def book(
        self,
        template: IndividualAppointment | GroupAppointment,
        actor_id: str | None = None,
    ) -> Appointment:
        """Book a single appointment.

        Raises:
            ValidationError: If the time window is invalid.
            ResourceNotFound: If a referenced entity does not exist.
            CapacityError: If the group is over its limit or equipment runs short.
            ConflictError: If the therapist or room is already booked.
        """
        interval = self._window(template.start, template.end)
        await self._verify_attendees(template)
        if isinstance(template, GroupAppointment):
            check_group_size(len(template.participants), template.max_participants)

        appointment = template.to_new_appointment(interval, created_by=actor_id)
        await self._checker.ensure_bookable(appointment)

        with store_errors("Creating appointment"):
            created = await self._appointments.create(appointment)
        logger.info(
            "Appointment booked: id={}, window={}", created.appointment_id, format_window(interval)
        )
        return created

    async def get(self, appointment_id: str) -> Appointment:
        with store_errors("Appointment lookup"):
            appointment = await self._appointments.get(appointment_id)
        if appointment is None:
            raise AppointmentNotFound(appointment_id)
        return appointment

    async def reschedule(
        self, appointment_id: str, start: dt.datetime, end: dt.datetime
    ) -> Appointment:
        """Move an appointment, ignoring its own current slot when checking conflicts."""
        current = await self.get(appointment_id)
        interval = self._window(start, end)

        moved = current.model_copy(update={"interval": interval})
        await self._checker.ensure_bookable(moved, exclude_appointment_id=appointment_id)

        with store_errors("Rescheduling appointment"):
            updated = await self._appointments.update(appointment_id, {"interval": interval})
        logger.info(
            "Appointment rescheduled: id={}, window={}", appointment_id, format_window(interval)
        )
        return updated

    async def change_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        await self.get(appointment_id)
        with store_errors("Updating appointment status"):
            updated = await self._appointments.update(appointment_id, {"status": status})
        logger.info("Appointment {} status -> {}", appointment_id, status.value)
        return updated

    async def cancel(self, appointment_id: str) -> Appointment:
        """Cancelled appointments are kept; they just stop occupying resources."""
        return await self.change_status(appointment_id, AppointmentStatus.CANCELLED)

    async def add_participant(
        self, appointment_id: str, participant: GroupParticipant
    ) -> Appointment:
        current = await self.get(appointment_id)
        if not current.is_group_session:
            raise CapacityError(f"Appointment {appointment_id} is not a group session")
        if not await self._learner_exists(participant.learner_id):
            raise ResourceNotFound("learner", participant.learner_id)
        check_group_size(len(current.participants) + 1, current.max_participants)

        with store_errors("Adding group participant"):
            updated = await self._appointments.update(
                appointment_id, {"participants": [*current.participants, participant]}
            )
        logger.info("Added participant to group appointment {}", appointment_id)
        return updated

    def _window(self, start: dt.datetime | None, end: dt.datetime | None) -> TimeInterval:
        return validate_booking_window(
            start,
            end,
            now=self._clock(),
            min_minutes=self._config.min_duration_minutes,
            max_minutes=self._config.max_duration_minutes,
            allow_past=self._config.allow_past_bookings,
        )

    async def _verify_attendees(self, template: IndividualAppointment | GroupAppointment) -> None:
        if template.client_id is not None:
            with store_errors("Client lookup"):
                found = await self._resources.client_exists(template.client_id)
            if not found:
                raise ResourceNotFound("client", template.client_id)

        if isinstance(template, IndividualAppointment):
            learner_ids = [template.learner_id] if template.learner_id else []
        else:
            learner_ids = [p.learner_id for p in template.participants]
        for learner_id in learner_ids:
            if not await self._learner_exists(learner_id):
                raise ResourceNotFound("learner", learner_id)

    async def _learner_exists(self, learner_id: str) -> bool:
        with store_errors("Learner lookup"):
            return await self._resources.learner_exists(learner_id)
