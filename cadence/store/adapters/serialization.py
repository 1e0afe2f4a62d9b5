import json
from typing import Any

from cadence.domain.models import (
    Appointment,
    AppointmentStatus,
    Equipment,
    EquipmentUsage,
    GroupParticipant,
    NewAppointment,
    RecurrenceFrequency,
    RecurrencePattern,
    RecurrenceRule,
    Room,
    StaffAssignment,
    Therapist,
    TimeInterval,
    Weekday,
)
from cadence.scheduling.time_helpers import format_instant, parse_instant

_FIELD_NAMES = {
    "title": "title",
    "status": "status",
    "therapist_id": "therapistId",
    "room_id": "roomId",
    "client_id": "clientId",
    "learner_id": "learnerId",
    "notes": "notes",
    "location": "location",
    "recurrence_pattern_id": "recurrencePatternId",
    "is_recurring": "isRecurring",
    "is_group_session": "isGroupSession",
    "max_participants": "maxParticipants",
    "created_by": "createdBy",
}


def _opt_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _encode(key: str, value: Any) -> Any:
    if key == "status":
        return AppointmentStatus(value).value
    if key == "participants":
        return [{"learnerId": p.learner_id, "notes": p.notes} for p in value]
    if key == "staff":
        return [{"userId": s.user_id, "role": s.role} for s in value]
    if key == "equipment":
        return [
            {"equipmentId": e.equipment_id, "quantity": e.quantity, "notes": e.notes}
            for e in value
        ]
    return value


def fields_to_json(fields: dict[str, Any]) -> dict[str, Any]:
    """Convert a partial appointment update to the backend's camelCase body."""
    body: dict[str, Any] = {}
    for key, value in fields.items():
        if key == "interval":
            body["startTime"] = format_instant(value.start)
            body["endTime"] = format_instant(value.end)
        elif key == "participants":
            body["groupParticipants"] = _encode(key, value)
        elif key == "staff":
            body["staffAssignments"] = _encode(key, value)
        elif key == "equipment":
            body["equipmentAssignments"] = _encode(key, value)
        elif key in _FIELD_NAMES:
            body[_FIELD_NAMES[key]] = _encode(key, value)
        else:
            raise ValueError(f"Unknown appointment field: {key}")
    return body


def appointment_to_json(appointment: NewAppointment) -> dict[str, Any]:
    fields = appointment.model_dump(exclude={"appointment_id"})
    fields["interval"] = appointment.interval
    fields["participants"] = appointment.participants
    fields["staff"] = appointment.staff
    fields["equipment"] = appointment.equipment
    return fields_to_json(fields)


def appointment_from_json(data: dict[str, Any]) -> Appointment:
    return Appointment(
        appointment_id=str(data["id"]),
        interval=TimeInterval(
            start=parse_instant(data["startTime"]), end=parse_instant(data["endTime"])
        ),
        title=data.get("title") or "",
        status=AppointmentStatus(data.get("status") or AppointmentStatus.SCHEDULED.value),
        therapist_id=str(data["therapistId"]),
        room_id=_opt_str(data.get("roomId")),
        client_id=_opt_str(data.get("clientId")),
        learner_id=_opt_str(data.get("learnerId")),
        notes=data.get("notes"),
        location=data.get("location"),
        recurrence_pattern_id=_opt_str(data.get("recurrencePatternId")),
        is_recurring=bool(data.get("isRecurring", False)),
        is_group_session=bool(data.get("isGroupSession", False)),
        max_participants=data.get("maxParticipants"),
        participants=[
            GroupParticipant(learner_id=str(p["learnerId"]), notes=p.get("notes"))
            for p in data.get("groupParticipants") or []
        ],
        staff=[
            StaffAssignment(user_id=str(s["userId"]), role=s.get("role"))
            for s in data.get("staffAssignments") or []
        ],
        equipment=[
            EquipmentUsage(
                equipment_id=str(e["equipmentId"]),
                quantity=e.get("quantity") or 1,
                notes=e.get("notes"),
            )
            for e in data.get("equipmentAssignments") or []
        ],
        created_by=_opt_str(data.get("createdBy")),
    )


def rule_to_json(rule: RecurrenceRule) -> dict[str, Any]:
    return {
        "frequency": rule.frequency.value if rule.frequency else None,
        "interval": rule.interval,
        "daysOfWeek": list(rule.days_of_week) if rule.days_of_week else None,
        "startDate": format_instant(rule.start_date) if rule.start_date else None,
        "endDate": format_instant(rule.end_date) if rule.end_date else None,
        "occurrenceCount": rule.occurrence_count,
    }


def parse_days_of_week(raw: Any) -> list[Weekday]:
    """Accept ``["MON", "WED"]`` or the JSON-encoded string ``'["MON", "WED"]'``."""
    if not raw:
        return []
    if isinstance(raw, str):
        raw = json.loads(raw)
    return [Weekday(str(tag).upper()) for tag in raw]


def pattern_from_json(data: dict[str, Any]) -> RecurrencePattern:
    end_raw = data.get("endDate")
    return RecurrencePattern(
        pattern_id=str(data["id"]),
        frequency=RecurrenceFrequency(data["frequency"]),
        interval=data.get("interval") or 1,
        days_of_week=parse_days_of_week(data.get("daysOfWeek")),
        start_date=parse_instant(data["startDate"]),
        end_date=parse_instant(end_raw) if end_raw else None,
        occurrence_count=data.get("occurrenceCount"),
    )


def therapist_from_json(data: dict[str, Any]) -> Therapist:
    return Therapist(
        therapist_id=str(data["id"]),
        first_name=data.get("firstName", ""),
        last_name=data.get("lastName", ""),
    )


def room_from_json(data: dict[str, Any]) -> Room:
    return Room(
        room_id=str(data["id"]),
        name=data.get("name", ""),
        capacity=data.get("capacity"),
        is_active=bool(data.get("isActive", True)),
    )


def equipment_from_json(data: dict[str, Any]) -> Equipment:
    return Equipment(
        equipment_id=str(data["id"]),
        name=data.get("name", ""),
        total_stock=data.get("quantity") or 1,
        is_available=bool(data.get("isAvailable", True)),
    )
