from loguru import logger

from cadence.domain.exceptions import CapacityError, ConflictError, ResourceNotFound
from cadence.domain.models import (
    Appointment,
    AppointmentStatus,
    Equipment,
    EquipmentUsage,
    NewAppointment,
    ResourceBooking,
    ResourceKind,
    TimeInterval,
)
from cadence.store.errors import store_errors
from cadence.store.ports import AppointmentStore, ResourceDirectory

THERAPIST_OCCUPYING_STATUSES = frozenset(
    {AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED}
)


def occupies(appointment: Appointment, kind: ResourceKind) -> bool:
    """Whether ``appointment`` still holds a resource of ``kind`` given its status."""
    if kind is ResourceKind.THERAPIST:
        return appointment.status in THERAPIST_OCCUPYING_STATUSES
    return appointment.status is not AppointmentStatus.CANCELLED


def check_group_size(participants: int, max_participants: int | None) -> None:
    """Raise ``CapacityError`` when a group session holds more learners than it allows."""
    if max_participants is not None and participants > max_participants:
        raise CapacityError(
            f"Group session is limited to {max_participants} participants, got {participants}"
        )


class ConflictChecker:
    """Answers whether a therapist, room or piece of equipment is free.

    This is a read-only pre-check. Checking and then creating are two
    separate store calls, so two concurrent requests for the same slot can
    both pass; the ``AppointmentStore`` must enforce exclusion itself.
    """

    def __init__(self, appointments: AppointmentStore, resources: ResourceDirectory) -> None:
        self._appointments = appointments
        self._resources = resources

    async def has_conflict(
        self,
        kind: ResourceKind,
        resource_id: str,
        interval: TimeInterval,
        exclude_appointment_id: str | None = None,
    ) -> bool:
        conflict = await self.find_conflict(kind, resource_id, interval, exclude_appointment_id)
        return conflict is not None

    async def find_conflict(
        self,
        kind: ResourceKind,
        resource_id: str,
        interval: TimeInterval,
        exclude_appointment_id: str | None = None,
    ) -> Appointment | None:
        """Return the first appointment occupying the resource during ``interval``.

        Raises:
            ResourceNotFound: If the resource does not exist.
            StoreUnavailableError: If a store lookup fails.
        """
        await self.resource_name(kind, resource_id)
        conflicts = await self._occupying(kind, resource_id, interval, exclude_appointment_id)
        return conflicts[0] if conflicts else None

    async def ensure_available(self, booking: ResourceBooking) -> None:
        """Raise ``ConflictError`` naming the resource and the clashing window."""
        name = await self.resource_name(booking.resource_kind, booking.resource_id)
        conflicts = await self._occupying(
            booking.resource_kind,
            booking.resource_id,
            booking.interval,
            booking.exclude_appointment_id,
        )
        if conflicts:
            clash = conflicts[0]
            logger.info(
                "Conflict for {} {}: appointment {}",
                booking.resource_kind.value,
                booking.resource_id,
                clash.appointment_id,
            )
            raise ConflictError(
                resource_name=name,
                start=clash.interval.start,
                end=clash.interval.end,
                conflicting_appointment_id=clash.appointment_id,
            )

    async def check_equipment_availability(
        self,
        equipment_id: str,
        interval: TimeInterval,
        quantity_needed: int = 1,
        exclude_appointment_id: str | None = None,
    ) -> bool:
        """Whether ``quantity_needed`` units are free for the whole interval.

        Unavailable equipment, or stock below the requested quantity, is
        never available regardless of existing bookings.
        """
        equipment = await self._equipment(equipment_id)
        if not equipment.is_available or equipment.total_stock < quantity_needed:
            return False

        bookings = await self._occupying(
            ResourceKind.EQUIPMENT_UNIT, equipment_id, interval, exclude_appointment_id
        )
        used = sum(b.quantity_of(equipment_id) for b in bookings)
        return equipment.total_stock - used >= quantity_needed

    async def ensure_equipment_available(
        self,
        usage: EquipmentUsage,
        interval: TimeInterval,
        exclude_appointment_id: str | None = None,
    ) -> None:
        """Raise ``CapacityError`` when the requested units cannot be covered."""
        available = await self.check_equipment_availability(
            usage.equipment_id, interval, usage.quantity, exclude_appointment_id
        )
        if not available:
            equipment = await self._equipment(usage.equipment_id)
            raise CapacityError(
                f"Insufficient quantity of {equipment.name}: {usage.quantity} requested"
            )

    async def ensure_bookable(
        self, appointment: NewAppointment, exclude_appointment_id: str | None = None
    ) -> None:
        """Check the therapist, then the room, then each piece of equipment."""
        holds = [(ResourceKind.THERAPIST, appointment.therapist_id)]
        if appointment.room_id:
            holds.append((ResourceKind.ROOM, appointment.room_id))
        for kind, resource_id in holds:
            await self.ensure_available(
                ResourceBooking(
                    resource_kind=kind,
                    resource_id=resource_id,
                    interval=appointment.interval,
                    exclude_appointment_id=exclude_appointment_id,
                )
            )
        for usage in appointment.equipment:
            await self.ensure_equipment_available(
                usage, appointment.interval, exclude_appointment_id
            )

    async def _occupying(
        self,
        kind: ResourceKind,
        resource_id: str,
        interval: TimeInterval,
        exclude_appointment_id: str | None,
    ) -> list[Appointment]:
        with store_errors("Overlap query"):
            found = await self._appointments.find_overlapping(
                kind, resource_id, interval, exclude_appointment_id
            )

        # The store may over-fetch; re-apply exclusion, status and overlap.
        return [
            a
            for a in found
            if a.appointment_id != exclude_appointment_id
            and occupies(a, kind)
            and a.interval.overlaps(interval)
        ]

    async def resource_name(self, kind: ResourceKind, resource_id: str) -> str:
        """Return the display name of a resource.

        Raises:
            ResourceNotFound: If the resource does not exist.
        """
        name: str | None = None
        with store_errors("Resource lookup"):
            if kind is ResourceKind.THERAPIST:
                therapist = await self._resources.get_therapist(resource_id)
                name = therapist.full_name if therapist else None
            elif kind is ResourceKind.ROOM:
                room = await self._resources.get_room(resource_id)
                name = room.name if room else None
            else:
                equipment = await self._resources.get_equipment(resource_id)
                name = equipment.name if equipment else None

        if name is None:
            raise ResourceNotFound(kind.value.lower(), resource_id)
        return name

    async def _equipment(self, equipment_id: str) -> Equipment:
        with store_errors("Resource lookup"):
            equipment = await self._resources.get_equipment(equipment_id)
        if equipment is None:
            raise ResourceNotFound("equipment", equipment_id)
        return equipment
