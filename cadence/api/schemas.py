"""Request payloads accepted from callers, in the backend's camelCase shape."""

import json

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from cadence.domain.models import (
    AppointmentStatus,
    EquipmentUsage,
    GroupAppointment,
    GroupParticipant,
    IndividualAppointment,
    RecurrenceFrequency,
    RecurrenceRule,
    RecurrenceRuleUpdate,
    ResourceKind,
    StaffAssignment,
    TimeInterval,
    UtcDatetime,
)


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class EquipmentRequest(_Request):
    equipment_id: str
    quantity: int = Field(default=1, ge=1)
    notes: str | None = None


class StaffRequest(_Request):
    user_id: str
    role: str | None = None


class ParticipantRequest(_Request):
    learner_id: str
    notes: str | None = None


class AppointmentRequest(_Request):
    """Mirrors the backend's create-appointment DTO."""

    start_time: UtcDatetime | None = None
    end_time: UtcDatetime | None = None
    title: str
    therapist_id: str
    client_id: str | None = None
    learner_id: str | None = None
    room_id: str | None = None
    notes: str | None = None
    location: str | None = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    is_group_session: bool = False
    max_participants: int | None = Field(default=None, ge=1)
    group_participants: list[ParticipantRequest] = Field(default_factory=list)
    staff_assignments: list[StaffRequest] = Field(default_factory=list)
    equipment_assignments: list[EquipmentRequest] = Field(default_factory=list)

    @model_validator(mode="after")
    def _session_shape(self) -> "AppointmentRequest":
        if self.is_group_session and self.max_participants is None:
            raise ValueError("maxParticipants is required for group sessions")
        if not self.is_group_session and not self.client_id:
            raise ValueError("clientId is required for individual sessions")
        return self

    def to_template(self) -> IndividualAppointment | GroupAppointment:
        common = {
            "title": self.title,
            "therapist_id": self.therapist_id,
            "start": self.start_time,
            "end": self.end_time,
            "room_id": self.room_id,
            "notes": self.notes,
            "location": self.location,
            "status": self.status,
            "staff": [StaffAssignment(user_id=s.user_id, role=s.role) for s in self.staff_assignments],
            "equipment": [
                EquipmentUsage(equipment_id=e.equipment_id, quantity=e.quantity, notes=e.notes)
                for e in self.equipment_assignments
            ],
        }
        if self.is_group_session:
            return GroupAppointment(
                max_participants=self.max_participants,  # type: ignore[arg-type]
                participants=[
                    GroupParticipant(learner_id=p.learner_id, notes=p.notes)
                    for p in self.group_participants
                ],
                client_id=self.client_id,
                **common,  # type: ignore[arg-type]
            )
        return IndividualAppointment(
            client_id=self.client_id,  # type: ignore[arg-type]
            learner_id=self.learner_id,
            **common,  # type: ignore[arg-type]
        )


def _decode_days(value: object) -> object:
    # The backend historically sent daysOfWeek as a JSON-encoded string.
    if isinstance(value, str):
        return json.loads(value)
    return value


class RecurrenceRequest(_Request):
    """Mirrors the backend's create-recurrence-pattern DTO."""

    frequency: RecurrenceFrequency | None = None
    interval: int = 1
    days_of_week: list[str] | None = None
    start_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    occurrence_count: int | None = None

    @field_validator("days_of_week", mode="before")
    @classmethod
    def _days_from_json(cls, value: object) -> object:
        return _decode_days(value)

    def to_rule(self) -> RecurrenceRule:
        return RecurrenceRule(**self.model_dump())


class RecurrenceUpdateRequest(_Request):
    frequency: RecurrenceFrequency | None = None
    interval: int | None = None
    days_of_week: list[str] | None = None
    start_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    occurrence_count: int | None = None

    @field_validator("days_of_week", mode="before")
    @classmethod
    def _days_from_json(cls, value: object) -> object:
        return _decode_days(value)

    def to_update(self) -> RecurrenceRuleUpdate:
        return RecurrenceRuleUpdate(**self.model_dump(exclude_unset=True))


class CreateSeriesRequest(_Request):
    appointment: AppointmentRequest
    recurrence: RecurrenceRequest
    actor_id: str | None = None


class ConflictCheckRequest(_Request):
    resource_kind: ResourceKind
    resource_id: str
    start: UtcDatetime
    end: UtcDatetime
    exclude_appointment_id: str | None = None

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(start=self.start, end=self.end)


class EquipmentCheckRequest(_Request):
    equipment_id: str
    start: UtcDatetime
    end: UtcDatetime
    quantity: int = Field(default=1, ge=1)
    exclude_appointment_id: str | None = None

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(start=self.start, end=self.end)


class RescheduleRequest(_Request):
    start_time: UtcDatetime
    end_time: UtcDatetime
