import datetime as dt
from typing import Any, Callable

import pytest

from cadence.config import SchedulingConfig
from cadence.domain.models import (
    Appointment,
    AppointmentStatus,
    Equipment,
    Room,
    Therapist,
    TimeInterval,
)
from cadence.scheduling.booking import BookingService
from cadence.scheduling.conflicts import ConflictChecker
from cadence.scheduling.series import RecurrenceExpander
from cadence.store.adapters.memory import (
    InMemoryAppointmentStore,
    InMemoryPatternStore,
    InMemoryResourceDirectory,
)

NOW = dt.datetime(2025, 3, 1, 12, 0, tzinfo=dt.timezone.utc)


@pytest.fixture
def appointment_store() -> InMemoryAppointmentStore:
    return InMemoryAppointmentStore()


@pytest.fixture
def pattern_store() -> InMemoryPatternStore:
    return InMemoryPatternStore()


@pytest.fixture
def directory() -> InMemoryResourceDirectory:
    directory = InMemoryResourceDirectory()
    directory.add_therapist(Therapist(therapist_id="t1", first_name="Dana", last_name="Reyes"))
    directory.add_therapist(Therapist(therapist_id="t2", first_name="Sam", last_name="Okafor"))
    directory.add_room(Room(room_id="r1", name="Sensory Room", capacity=4))
    directory.add_equipment(Equipment(equipment_id="e1", name="Weighted Vest Set", total_stock=3))
    directory.add_equipment(
        Equipment(equipment_id="e2", name="Balance Board", total_stock=2, is_available=False)
    )
    directory.clients.update({"c1", "c2"})
    directory.learners.update({"l1", "l2", "l3"})
    return directory


@pytest.fixture
def checker(
    appointment_store: InMemoryAppointmentStore, directory: InMemoryResourceDirectory
) -> ConflictChecker:
    return ConflictChecker(appointment_store, directory)


@pytest.fixture
def expander(
    appointment_store: InMemoryAppointmentStore,
    pattern_store: InMemoryPatternStore,
    checker: ConflictChecker,
) -> RecurrenceExpander:
    return RecurrenceExpander(
        appointment_store, pattern_store, checker, config=SchedulingConfig(), clock=lambda: NOW
    )


@pytest.fixture
def booking(
    appointment_store: InMemoryAppointmentStore,
    directory: InMemoryResourceDirectory,
    checker: ConflictChecker,
) -> BookingService:
    return BookingService(
        appointment_store, directory, checker, config=SchedulingConfig(), clock=lambda: NOW
    )


@pytest.fixture
def add_appointment(
    appointment_store: InMemoryAppointmentStore,
) -> Callable[..., Appointment]:
    """Insert an appointment straight into the store, bypassing every check."""

    def _add(
        appointment_id: str,
        start: dt.datetime,
        end: dt.datetime,
        **overrides: Any,
    ) -> Appointment:
        fields: dict[str, Any] = {
            "appointment_id": appointment_id,
            "interval": TimeInterval(start=start, end=end),
            "title": "Speech therapy session",
            "therapist_id": "t1",
            "client_id": "c1",
            "status": AppointmentStatus.SCHEDULED,
        }
        fields.update(overrides)
        appointment = Appointment(**fields)
        appointment_store.appointments[appointment_id] = appointment
        return appointment

    return _add
