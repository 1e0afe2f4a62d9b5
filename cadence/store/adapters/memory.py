import datetime as dt
from typing import Any

from cadence.domain.exceptions import AppointmentNotFound, PatternNotFound
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
    Weekday,
)


def _uses_resource(appointment: Appointment, kind: ResourceKind, resource_id: str) -> bool:
    if kind is ResourceKind.THERAPIST:
        return appointment.therapist_id == resource_id
    if kind is ResourceKind.ROOM:
        return appointment.room_id == resource_id
    return any(e.equipment_id == resource_id for e in appointment.equipment)


class InMemoryAppointmentStore:
    """Dict-backed implementation of the ``AppointmentStore`` protocol.

    Set ``create_errors`` (keyed by 1-based call number) to make a given
    ``create`` call raise, or ``find_error`` to make every overlap query
    raise. ``create_calls`` counts every ``create`` attempt, including the
    failed ones.
    """

    def __init__(self, appointments: list[Appointment] | None = None) -> None:
        self.appointments: dict[str, Appointment] = {}
        self.create_calls: int = 0
        self.deleted: list[str] = []

        self.create_errors: dict[int, Exception] = {}
        self.find_error: Exception | None = None

        self._next_id = 1
        for appointment in appointments or []:
            self.appointments[appointment.appointment_id] = appointment

    async def find_overlapping(
        self,
        kind: ResourceKind,
        resource_id: str,
        interval: TimeInterval,
        exclude_id: str | None = None,
    ) -> list[Appointment]:
        if self.find_error:
            raise self.find_error
        return [
            a
            for a in self.appointments.values()
            if a.appointment_id != exclude_id
            and _uses_resource(a, kind, resource_id)
            and a.interval.overlaps(interval)
        ]

    async def create(self, appointment: NewAppointment) -> Appointment:
        self.create_calls += 1
        error = self.create_errors.get(self.create_calls)
        if error:
            raise error

        appointment_id = f"appt-{self._next_id}"
        self._next_id += 1
        created = Appointment(appointment_id=appointment_id, **appointment.model_dump())
        self.appointments[appointment_id] = created
        return created

    async def get(self, appointment_id: str) -> Appointment | None:
        return self.appointments.get(appointment_id)

    async def update(self, appointment_id: str, fields: dict[str, Any]) -> Appointment:
        current = self.appointments.get(appointment_id)
        if current is None:
            raise AppointmentNotFound(appointment_id)
        updated = current.model_copy(update=fields)
        self.appointments[appointment_id] = updated
        return updated

    async def delete(self, appointment_id: str) -> None:
        if self.appointments.pop(appointment_id, None) is None:
            raise AppointmentNotFound(appointment_id)
        self.deleted.append(appointment_id)

    async def find_by_pattern(
        self, pattern_id: str, starting_at: dt.datetime | None = None
    ) -> list[Appointment]:
        linked = [
            a
            for a in self.appointments.values()
            if a.recurrence_pattern_id == pattern_id
            and (starting_at is None or a.interval.start >= starting_at)
        ]
        return sorted(linked, key=lambda a: a.interval.start)


class InMemoryPatternStore:
    """Dict-backed implementation of the ``RecurrencePatternStore`` protocol."""

    def __init__(self) -> None:
        self.patterns: dict[str, RecurrencePattern] = {}
        self.created: list[RecurrenceRule] = []
        self._next_id = 1

    async def create(self, rule: RecurrenceRule) -> RecurrencePattern:
        pattern_id = f"pattern-{self._next_id}"
        self._next_id += 1
        pattern = _pattern_from_rule(pattern_id, rule)
        self.patterns[pattern_id] = pattern
        self.created.append(rule)
        return pattern

    async def get(self, pattern_id: str) -> RecurrencePattern | None:
        return self.patterns.get(pattern_id)

    async def update(self, pattern_id: str, rule: RecurrenceRule) -> RecurrencePattern:
        if pattern_id not in self.patterns:
            raise PatternNotFound(pattern_id)
        pattern = _pattern_from_rule(pattern_id, rule)
        self.patterns[pattern_id] = pattern
        return pattern

    async def delete(self, pattern_id: str) -> None:
        if self.patterns.pop(pattern_id, None) is None:
            raise PatternNotFound(pattern_id)


class InMemoryResourceDirectory:
    """Pre-load therapists, rooms, equipment, clients and learners to control lookups."""

    def __init__(self) -> None:
        self.therapists: dict[str, Therapist] = {}
        self.rooms: dict[str, Room] = {}
        self.equipment: dict[str, Equipment] = {}
        self.clients: set[str] = set()
        self.learners: set[str] = set()

    def add_therapist(self, therapist: Therapist) -> None:
        self.therapists[therapist.therapist_id] = therapist

    def add_room(self, room: Room) -> None:
        self.rooms[room.room_id] = room

    def add_equipment(self, equipment: Equipment) -> None:
        self.equipment[equipment.equipment_id] = equipment

    async def get_therapist(self, therapist_id: str) -> Therapist | None:
        return self.therapists.get(therapist_id)

    async def get_room(self, room_id: str) -> Room | None:
        return self.rooms.get(room_id)

    async def get_equipment(self, equipment_id: str) -> Equipment | None:
        return self.equipment.get(equipment_id)

    async def client_exists(self, client_id: str) -> bool:
        return client_id in self.clients

    async def learner_exists(self, learner_id: str) -> bool:
        return learner_id in self.learners


def _pattern_from_rule(pattern_id: str, rule: RecurrenceRule) -> RecurrencePattern:
    return RecurrencePattern(
        pattern_id=pattern_id,
        frequency=rule.frequency,  # type: ignore[arg-type]
        interval=rule.interval,
        days_of_week=[Weekday(tag) for tag in rule.days_of_week or []],
        start_date=rule.start_date,  # type: ignore[arg-type]
        end_date=rule.end_date,
        occurrence_count=rule.occurrence_count,
    )
