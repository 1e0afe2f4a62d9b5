import datetime as dt

import pytest

from cadence.domain.exceptions import (
    AppointmentNotFound,
    CapacityError,
    ConflictError,
    ResourceNotFound,
    StoreUnavailableError,
    ValidationError,
)
from cadence.domain.models import (
    AppointmentStatus,
    GroupAppointment,
    GroupParticipant,
    IndividualAppointment,
    ResourceKind,
    TimeInterval,
)
from cadence.scheduling.booking import BookingService


def _utc(*args: int) -> dt.datetime:
    return dt.datetime(*args, tzinfo=dt.timezone.utc)


def _template(**overrides) -> IndividualAppointment:
    fields = {
        "title": "Speech therapy session",
        "therapist_id": "t1",
        "client_id": "c1",
        "learner_id": "l1",
        "room_id": "r1",
        "start": _utc(2025, 4, 1, 14),
        "end": _utc(2025, 4, 1, 15),
    }
    fields.update(overrides)
    return IndividualAppointment(**fields)


def _group(participants: list[str], max_participants: int) -> GroupAppointment:
    return GroupAppointment(
        title="Social skills group",
        therapist_id="t2",
        max_participants=max_participants,
        participants=[GroupParticipant(learner_id=p) for p in participants],
        start=_utc(2025, 4, 2, 9),
        end=_utc(2025, 4, 2, 10),
    )


class TestBook:
    @pytest.mark.asyncio
    async def test_books_a_free_slot(self, booking: BookingService, appointment_store) -> None:
        appointment = await booking.book(_template(), actor_id="u1")

        assert appointment.appointment_id in appointment_store.appointments
        assert appointment.interval == TimeInterval(
            start=_utc(2025, 4, 1, 14), end=_utc(2025, 4, 1, 15)
        )
        assert appointment.created_by == "u1"
        assert not appointment.is_recurring

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("start", "end", "message"),
        [
            (None, _utc(2025, 4, 1, 15), "Start and end times are required"),
            (_utc(2025, 4, 1, 15), _utc(2025, 4, 1, 14), "End time must be after start time"),
            (_utc(2025, 2, 1, 14), _utc(2025, 2, 1, 15), "cannot be scheduled in the past"),
            (_utc(2025, 4, 1, 14), _utc(2025, 4, 1, 14, 10), "at least 15 minutes"),
            (_utc(2025, 4, 1, 9), _utc(2025, 4, 1, 14), "cannot exceed 240 minutes"),
        ],
        ids=["missing-start", "reversed", "past", "too-short", "too-long"],
    )
    async def test_rejects_bad_windows(
        self,
        booking: BookingService,
        appointment_store,
        start: dt.datetime | None,
        end: dt.datetime,
        message: str,
    ) -> None:
        with pytest.raises(ValidationError, match=message):
            await booking.book(_template(start=start, end=end))

        assert appointment_store.create_calls == 0

    @pytest.mark.asyncio
    async def test_unknown_client(self, booking: BookingService) -> None:
        with pytest.raises(ResourceNotFound, match="Client with ID c9 not found"):
            await booking.book(_template(client_id="c9"))

    @pytest.mark.asyncio
    async def test_unknown_learner(self, booking: BookingService) -> None:
        with pytest.raises(ResourceNotFound, match="Learner with ID l9 not found"):
            await booking.book(_template(learner_id="l9"))

    @pytest.mark.asyncio
    async def test_therapist_conflict(self, booking: BookingService, add_appointment) -> None:
        add_appointment("existing", _utc(2025, 4, 1, 14, 30), _utc(2025, 4, 1, 15, 30))

        with pytest.raises(ConflictError, match="Dana Reyes"):
            await booking.book(_template())

    @pytest.mark.asyncio
    async def test_group_within_limit(self, booking: BookingService) -> None:
        appointment = await booking.book(_group(["l1", "l2"], max_participants=2))

        assert appointment.is_group_session
        assert [p.learner_id for p in appointment.participants] == ["l1", "l2"]

    @pytest.mark.asyncio
    async def test_group_over_limit(self, booking: BookingService) -> None:
        with pytest.raises(CapacityError, match="limited to 1 participants, got 2"):
            await booking.book(_group(["l1", "l2"], max_participants=1))

    @pytest.mark.asyncio
    async def test_group_with_unknown_participant(self, booking: BookingService) -> None:
        with pytest.raises(ResourceNotFound, match="Learner with ID l9"):
            await booking.book(_group(["l1", "l9"], max_participants=4))

    @pytest.mark.asyncio
    async def test_store_failure_is_wrapped(self, booking: BookingService, appointment_store) -> None:
        appointment_store.create_errors = {1: OSError("disk full")}

        with pytest.raises(StoreUnavailableError, match="Creating appointment failed: disk full"):
            await booking.book(_template())


class TestReschedule:
    @pytest.mark.asyncio
    async def test_overlapping_its_own_slot_is_allowed(
        self, booking: BookingService, add_appointment
    ) -> None:
        add_appointment("a1", _utc(2025, 4, 1, 14), _utc(2025, 4, 1, 15), room_id="r1")

        moved = await booking.reschedule("a1", _utc(2025, 4, 1, 14, 30), _utc(2025, 4, 1, 15, 30))

        assert moved.interval.start == _utc(2025, 4, 1, 14, 30)
        assert moved.interval.end == _utc(2025, 4, 1, 15, 30)

    @pytest.mark.asyncio
    async def test_into_another_booking(self, booking: BookingService, add_appointment) -> None:
        add_appointment("a1", _utc(2025, 4, 1, 14), _utc(2025, 4, 1, 15))
        add_appointment("a2", _utc(2025, 4, 1, 16), _utc(2025, 4, 1, 17))

        with pytest.raises(ConflictError) as exc_info:
            await booking.reschedule("a1", _utc(2025, 4, 1, 16), _utc(2025, 4, 1, 17))

        assert exc_info.value.conflicting_appointment_id == "a2"

    @pytest.mark.asyncio
    async def test_unknown_appointment(self, booking: BookingService) -> None:
        with pytest.raises(AppointmentNotFound):
            await booking.reschedule("nope", _utc(2025, 4, 1, 14), _utc(2025, 4, 1, 15))


class TestStatusChanges:
    @pytest.mark.asyncio
    async def test_cancel_frees_the_slot(
        self, booking: BookingService, checker, add_appointment
    ) -> None:
        add_appointment("a1", _utc(2025, 4, 1, 14), _utc(2025, 4, 1, 15))
        window = TimeInterval(start=_utc(2025, 4, 1, 14), end=_utc(2025, 4, 1, 15))

        cancelled = await booking.cancel("a1")

        assert cancelled.status is AppointmentStatus.CANCELLED
        assert not await checker.has_conflict(ResourceKind.THERAPIST, "t1", window)

    @pytest.mark.asyncio
    async def test_change_status(self, booking: BookingService, add_appointment) -> None:
        add_appointment("a1", _utc(2025, 4, 1, 14), _utc(2025, 4, 1, 15))

        updated = await booking.change_status("a1", AppointmentStatus.CONFIRMED)

        assert updated.status is AppointmentStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_cancel_unknown(self, booking: BookingService) -> None:
        with pytest.raises(AppointmentNotFound, match="Appointment with ID nope not found"):
            await booking.cancel("nope")


class TestAddParticipant:
    @pytest.mark.asyncio
    async def test_adds_until_full(self, booking: BookingService, add_appointment) -> None:
        add_appointment(
            "g1",
            _utc(2025, 4, 2, 9),
            _utc(2025, 4, 2, 10),
            client_id=None,
            is_group_session=True,
            max_participants=2,
            participants=[GroupParticipant(learner_id="l1")],
        )

        updated = await booking.add_participant("g1", GroupParticipant(learner_id="l2"))
        assert [p.learner_id for p in updated.participants] == ["l1", "l2"]

        with pytest.raises(CapacityError, match="limited to 2 participants, got 3"):
            await booking.add_participant("g1", GroupParticipant(learner_id="l3"))

    @pytest.mark.asyncio
    async def test_individual_session_takes_no_participants(
        self, booking: BookingService, add_appointment
    ) -> None:
        add_appointment("a1", _utc(2025, 4, 1, 14), _utc(2025, 4, 1, 15))

        with pytest.raises(CapacityError, match="not a group session"):
            await booking.add_participant("a1", GroupParticipant(learner_id="l2"))

    @pytest.mark.asyncio
    async def test_unknown_learner(self, booking: BookingService, add_appointment) -> None:
        add_appointment(
            "g1",
            _utc(2025, 4, 2, 9),
            _utc(2025, 4, 2, 10),
            is_group_session=True,
            max_participants=4,
        )

        with pytest.raises(ResourceNotFound, match="Learner with ID l9"):
            await booking.add_participant("g1", GroupParticipant(learner_id="l9"))
