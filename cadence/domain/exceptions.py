import datetime as dt


class SchedulingError(Exception):
    """Base exception for all scheduling errors."""


class StoreUnavailableError(SchedulingError):
    """Raised when a storage collaborator is unreachable or fails unexpectedly."""


class ValidationError(SchedulingError):
    """Raised when a request is malformed and the caller can correct it."""


class InvalidRecurrenceRule(ValidationError):
    """Raised when a recurrence rule has an invalid shape."""


class InvalidAppointmentTemplate(ValidationError):
    """Raised when an appointment template lacks a usable time window."""


class NotFoundError(SchedulingError):
    """Raised when a referenced entity does not exist."""


class ResourceNotFound(NotFoundError):
    """Raised when a therapist, room, equipment, client or learner is missing."""

    def __init__(self, kind: str, resource_id: str) -> None:
        self.kind = kind
        self.resource_id = resource_id
        super().__init__(f"{kind.replace('_', ' ').capitalize()} with ID {resource_id} not found")


class PatternNotFound(NotFoundError):
    def __init__(self, pattern_id: str) -> None:
        self.pattern_id = pattern_id
        super().__init__(f"Recurrence pattern with ID {pattern_id} not found")


class AppointmentNotFound(NotFoundError):
    def __init__(self, appointment_id: str) -> None:
        self.appointment_id = appointment_id
        super().__init__(f"Appointment with ID {appointment_id} not found")


class ConflictError(SchedulingError):
    """Raised when a resource is already booked for the requested window."""

    def __init__(
        self,
        resource_name: str,
        start: dt.datetime,
        end: dt.datetime,
        conflicting_appointment_id: str | None = None,
    ) -> None:
        self.resource_name = resource_name
        self.start = start
        self.end = end
        self.conflicting_appointment_id = conflicting_appointment_id
        super().__init__(
            f"Appointment conflicts with existing appointment for {resource_name} "
            f"from {start:%Y-%m-%d %H:%M} to {end:%Y-%m-%d %H:%M} UTC"
        )


class CapacityError(SchedulingError):
    """Raised when equipment stock or group size cannot cover a booking."""
