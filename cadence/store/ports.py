import datetime as dt
from typing import Any, Protocol

from cadence.domain.models import (
    Appointment,
    Equipment,
    NewAppointment,
    RecurrencePattern,
    RecurrenceRule,
    ResourceKind,
    Room,
    Therapist,
    TimeInterval,
)


class AppointmentStore(Protocol):
    """Persistence boundary for appointments.

    The store is the authoritative guard against double booking: a
    conflict check followed by ``create`` is not atomic, so concurrent
    requests can both pass the check. Implementations backed by a database
    should enforce an exclusion constraint (or serializable transaction) on
    ``(therapist_id, interval)`` and raise on violation.
    """

    async def find_overlapping(
        self,
        kind: ResourceKind,
        resource_id: str,
        interval: TimeInterval,
        exclude_id: str | None = None,
    ) -> list[Appointment]:
        """Return appointments using the resource whose interval overlaps ``interval``."""
        ...

    async def create(self, appointment: NewAppointment) -> Appointment:
        """Persist an appointment and return it with its assigned ID."""
        ...

    async def get(self, appointment_id: str) -> Appointment | None:
        """Return the appointment, or None if it does not exist."""
        ...

    async def update(self, appointment_id: str, fields: dict[str, Any]) -> Appointment:
        """Apply field changes to an appointment."""
        ...

    async def delete(self, appointment_id: str) -> None:
        """Remove an appointment."""
        ...

    async def find_by_pattern(
        self, pattern_id: str, starting_at: dt.datetime | None = None
    ) -> list[Appointment]:
        """Return appointments linked to a pattern, ordered by start.

        When ``starting_at`` is given only appointments with
        ``start >= starting_at`` are returned.
        """
        ...


class RecurrencePatternStore(Protocol):
    """Persistence boundary for recurrence patterns."""

    async def create(self, rule: RecurrenceRule) -> RecurrencePattern:
        """Persist a validated rule."""
        ...

    async def get(self, pattern_id: str) -> RecurrencePattern | None:
        """Return the pattern, or None if it does not exist."""
        ...

    async def update(self, pattern_id: str, rule: RecurrenceRule) -> RecurrencePattern:
        """Replace the stored rule fields."""
        ...

    async def delete(self, pattern_id: str) -> None:
        """Remove the pattern record."""
        ...


class ResourceDirectory(Protocol):
    """Existence lookups for the entities a booking refers to."""

    async def get_therapist(self, therapist_id: str) -> Therapist | None: ...

    async def get_room(self, room_id: str) -> Room | None: ...

    async def get_equipment(self, equipment_id: str) -> Equipment | None: ...

    async def client_exists(self, client_id: str) -> bool: ...

    async def learner_exists(self, learner_id: str) -> bool: ...
