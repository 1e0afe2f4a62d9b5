import datetime as dt
from enum import Enum
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from cadence.domain.exceptions import InvalidAppointmentTemplate


def as_utc(value: dt.datetime) -> dt.datetime:
    """Normalise a datetime to an aware UTC instant. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


UtcDatetime = Annotated[dt.datetime, AfterValidator(as_utc)]


class AppointmentStatus(str, Enum):
    """Lifecycle states of an appointment."""

    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"
    RESCHEDULED = "RESCHEDULED"


class ResourceKind(str, Enum):
    """Kinds of resource whose time or stock is contended for."""

    THERAPIST = "THERAPIST"
    ROOM = "ROOM"
    EQUIPMENT_UNIT = "EQUIPMENT_UNIT"


class RecurrenceFrequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    CUSTOM = "CUSTOM"


class Weekday(str, Enum):
    """Three-letter weekday tags, declared in ``date.weekday()`` order."""

    MON = "MON"
    TUE = "TUE"
    WED = "WED"
    THU = "THU"
    FRI = "FRI"
    SAT = "SAT"
    SUN = "SUN"

    @classmethod
    def of(cls, value: dt.date) -> "Weekday":
        return list(cls)[value.weekday()]


class TimeInterval(BaseModel):
    """A half-open ``[start, end)`` span between two UTC instants."""

    model_config = ConfigDict(frozen=True)

    start: UtcDatetime
    end: UtcDatetime

    @model_validator(mode="after")
    def _start_before_end(self) -> "TimeInterval":
        if self.start >= self.end:
            raise ValueError("interval start must be before its end")
        return self

    @property
    def duration(self) -> dt.timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeInterval") -> bool:
        """Touching endpoints do not overlap."""
        return self.start < other.end and other.start < self.end


class EquipmentUsage(BaseModel):
    model_config = ConfigDict(frozen=True)

    equipment_id: str
    quantity: int = Field(default=1, ge=1)
    notes: str | None = None


class StaffAssignment(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    role: str | None = None


class GroupParticipant(BaseModel):
    model_config = ConfigDict(frozen=True)

    learner_id: str
    notes: str | None = None


class _TemplateFields(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    therapist_id: str
    start: UtcDatetime | None = None
    end: UtcDatetime | None = None
    room_id: str | None = None
    notes: str | None = None
    location: str | None = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    staff: list[StaffAssignment] = Field(default_factory=list)
    equipment: list[EquipmentUsage] = Field(default_factory=list)

    def window(self) -> TimeInterval:
        """Return the template's time window.

        Raises:
            InvalidAppointmentTemplate: If start or end is missing, or end <= start.
        """
        if self.start is None or self.end is None:
            raise InvalidAppointmentTemplate("Base appointment must have start and end times")
        if self.end <= self.start:
            raise InvalidAppointmentTemplate("Appointment end time must be after start time")
        return TimeInterval(start=self.start, end=self.end)

    def _shared_fields(self) -> dict[str, object]:
        return {
            "title": self.title,
            "therapist_id": self.therapist_id,
            "room_id": self.room_id,
            "notes": self.notes,
            "location": self.location,
            "status": self.status,
            "staff": list(self.staff),
            "equipment": list(self.equipment),
        }


class IndividualAppointment(_TemplateFields):
    """A one-to-one session with a client and optionally one of their learners."""

    kind: Literal["individual"] = "individual"
    client_id: str
    learner_id: str | None = None

    def to_new_appointment(
        self,
        interval: TimeInterval,
        *,
        pattern_id: str | None = None,
        created_by: str | None = None,
    ) -> "NewAppointment":
        return NewAppointment(
            interval=interval,
            client_id=self.client_id,
            learner_id=self.learner_id,
            is_group_session=False,
            recurrence_pattern_id=pattern_id,
            is_recurring=pattern_id is not None,
            created_by=created_by,
            **self._shared_fields(),  # type: ignore[arg-type]
        )


class GroupAppointment(_TemplateFields):
    """A group session with a participant limit and a list of learners."""

    kind: Literal["group"] = "group"
    max_participants: int = Field(ge=1)
    participants: list[GroupParticipant] = Field(default_factory=list)
    client_id: str | None = None

    def to_new_appointment(
        self,
        interval: TimeInterval,
        *,
        pattern_id: str | None = None,
        created_by: str | None = None,
    ) -> "NewAppointment":
        return NewAppointment(
            interval=interval,
            client_id=self.client_id,
            is_group_session=True,
            max_participants=self.max_participants,
            participants=list(self.participants),
            recurrence_pattern_id=pattern_id,
            is_recurring=pattern_id is not None,
            created_by=created_by,
            **self._shared_fields(),  # type: ignore[arg-type]
        )


AppointmentTemplate = Annotated[IndividualAppointment | GroupAppointment, Field(discriminator="kind")]


class NewAppointment(BaseModel):
    """An appointment ready to be persisted, before the store assigns its ID."""

    model_config = ConfigDict(frozen=True)

    interval: TimeInterval
    title: str
    therapist_id: str
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    room_id: str | None = None
    client_id: str | None = None
    learner_id: str | None = None
    notes: str | None = None
    location: str | None = None
    recurrence_pattern_id: str | None = None
    is_recurring: bool = False
    is_group_session: bool = False
    max_participants: int | None = None
    participants: list[GroupParticipant] = Field(default_factory=list)
    staff: list[StaffAssignment] = Field(default_factory=list)
    equipment: list[EquipmentUsage] = Field(default_factory=list)
    created_by: str | None = None

    def quantity_of(self, equipment_id: str) -> int:
        return sum(e.quantity for e in self.equipment if e.equipment_id == equipment_id)


class Appointment(NewAppointment):
    """A persisted appointment."""

    appointment_id: str

    def to_template(self) -> IndividualAppointment | GroupAppointment:
        """Rebuild the template this appointment was booked from."""
        common = {
            "title": self.title,
            "therapist_id": self.therapist_id,
            "start": self.interval.start,
            "end": self.interval.end,
            "room_id": self.room_id,
            "notes": self.notes,
            "location": self.location,
            "status": AppointmentStatus.SCHEDULED,
            "staff": list(self.staff),
            "equipment": list(self.equipment),
        }
        if self.is_group_session:
            return GroupAppointment(
                max_participants=self.max_participants or max(len(self.participants), 1),
                participants=list(self.participants),
                client_id=self.client_id,
                **common,  # type: ignore[arg-type]
            )
        if self.client_id is None:
            raise InvalidAppointmentTemplate(
                f"Appointment {self.appointment_id} has no client to rebuild a template from"
            )
        return IndividualAppointment(
            client_id=self.client_id,
            learner_id=self.learner_id,
            **common,  # type: ignore[arg-type]
        )


class RecurrenceRule(BaseModel):
    """A caller-supplied recurrence rule.

    Every field is optional so that shape problems are reported by the
    validation gate in ``cadence.scheduling.recurrence`` instead of by the
    model itself. ``days_of_week`` holds raw tags for the same reason.
    """

    model_config = ConfigDict(frozen=True)

    frequency: RecurrenceFrequency | None = None
    interval: int = 1
    days_of_week: list[str] | None = None
    start_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    occurrence_count: int | None = None

    @property
    def weekdays(self) -> frozenset[Weekday]:
        """The recognised weekday tags; unknown tags are ignored."""
        valid = {w.value for w in Weekday}
        return frozenset(Weekday(tag) for tag in self.days_of_week or [] if tag in valid)


class RecurrenceRuleUpdate(BaseModel):
    """A partial change to a stored rule. Only explicitly set fields apply."""

    frequency: RecurrenceFrequency | None = None
    interval: int | None = None
    days_of_week: list[str] | None = None
    start_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    occurrence_count: int | None = None

    def apply_to(self, rule: RecurrenceRule) -> RecurrenceRule:
        changes = self.model_dump(exclude_unset=True)
        return RecurrenceRule.model_validate({**rule.model_dump(), **changes})


class RecurrencePattern(BaseModel):
    """A stored recurrence rule. Linked appointments hold the back-reference."""

    model_config = ConfigDict(frozen=True)

    pattern_id: str
    frequency: RecurrenceFrequency
    interval: int = 1
    days_of_week: list[Weekday] = Field(default_factory=list)
    start_date: UtcDatetime
    end_date: UtcDatetime | None = None
    occurrence_count: int | None = None

    def as_rule(self) -> RecurrenceRule:
        return RecurrenceRule(
            frequency=self.frequency,
            interval=self.interval,
            days_of_week=[d.value for d in self.days_of_week],
            start_date=self.start_date,
            end_date=self.end_date,
            occurrence_count=self.occurrence_count,
        )


class Therapist(BaseModel):
    model_config = ConfigDict(frozen=True)

    therapist_id: str
    first_name: str
    last_name: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Room(BaseModel):
    model_config = ConfigDict(frozen=True)

    room_id: str
    name: str
    capacity: int | None = None
    is_active: bool = True


class Equipment(BaseModel):
    model_config = ConfigDict(frozen=True)

    equipment_id: str
    name: str
    total_stock: int = 1
    is_available: bool = True


class ResourceBooking(BaseModel):
    """A request to hold one resource for one interval."""

    model_config = ConfigDict(frozen=True)

    resource_kind: ResourceKind
    resource_id: str
    interval: TimeInterval
    exclude_appointment_id: str | None = None


class OccurrenceFailure(BaseModel):
    """One occurrence of a series that could not be booked."""

    model_config = ConfigDict(frozen=True)

    start: UtcDatetime
    reason: str


class SeriesResult(BaseModel):
    """Outcome of expanding a recurrence rule into appointments.

    ``appointment_ids`` is in chronological order. A non-empty ``failures``
    list marks a partial series; it is a warning, not an error.
    """

    pattern_id: str
    appointment_ids: list[str] = Field(default_factory=list)
    failures: list[OccurrenceFailure] = Field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failures)


class PatternUpdate(BaseModel):
    pattern: RecurrencePattern
    regenerated: SeriesResult | None = None
