from typing import Any, Awaitable, Callable

import pydantic
from loguru import logger

from cadence.api.schemas import (
    AppointmentRequest,
    ConflictCheckRequest,
    CreateSeriesRequest,
    EquipmentCheckRequest,
    RecurrenceUpdateRequest,
    RescheduleRequest,
)
from cadence.domain.exceptions import SchedulingError
from cadence.domain.models import Appointment
from cadence.scheduling.factory import SchedulingServices
from cadence.scheduling.time_helpers import format_instant, format_window

Result = dict[str, Any]


def _describe_validation(exc: pydantic.ValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err["loc"])
        parts.append(f"{location}: {err['msg']}" if location else err["msg"])
    return "; ".join(parts)


def _appointment_summary(appointment: Appointment) -> Result:
    return {
        "id": appointment.appointment_id,
        "startTime": format_instant(appointment.interval.start),
        "endTime": format_instant(appointment.interval.end),
        "status": appointment.status.value,
        "therapistId": appointment.therapist_id,
        "roomId": appointment.room_id,
        "recurrencePatternId": appointment.recurrence_pattern_id,
    }


class SchedulingHandlers:
    """Caller-facing entry points over the scheduling core.

    Each handler takes the raw payload an HTTP controller would receive
    (camelCase keys, ISO-8601 strings), and always returns a result dict
    with ``success`` and, on failure, ``error``, ``kind`` and ``message``.
    """

    def __init__(self, services: SchedulingServices) -> None:
        self._services = services

    async def check_conflict(self, payload: dict[str, Any]) -> Result:
        async def run() -> Result:
            request = ConflictCheckRequest.model_validate(payload)
            conflict = await self._services.checker.find_conflict(
                request.resource_kind,
                request.resource_id,
                request.interval,
                request.exclude_appointment_id,
            )
            if conflict is None:
                return {"success": True, "conflict": False, "message": "The slot is free."}
            name = await self._services.checker.resource_name(
                request.resource_kind, request.resource_id
            )
            return {
                "success": True,
                "conflict": True,
                "conflictingAppointment": _appointment_summary(conflict),
                "message": f"{name} is already booked {format_window(conflict.interval)}.",
            }

        return await self._guard("check_conflict", run)

    async def check_equipment(self, payload: dict[str, Any]) -> Result:
        async def run() -> Result:
            request = EquipmentCheckRequest.model_validate(payload)
            available = await self._services.checker.check_equipment_availability(
                request.equipment_id,
                request.interval,
                request.quantity,
                request.exclude_appointment_id,
            )
            return {"success": True, "available": available}

        return await self._guard("check_equipment", run)

    async def create_series(self, payload: dict[str, Any]) -> Result:
        async def run() -> Result:
            request = CreateSeriesRequest.model_validate(payload)
            result = await self._services.series.create_series(
                request.appointment.to_template(),
                request.recurrence.to_rule(),
                request.actor_id,
            )
            response: Result = {
                "success": True,
                "patternId": result.pattern_id,
                "appointmentIds": result.appointment_ids,
                "partial": result.partial,
                "message": f"Created {len(result.appointment_ids)} appointment(s).",
            }
            if result.partial:
                response["warnings"] = [
                    f"{format_instant(f.start)}: {f.reason}" for f in result.failures
                ]
            return response

        return await self._guard("create_series", run)

    async def update_pattern(
        self, pattern_id: str, payload: dict[str, Any], regenerate_future: bool = False
    ) -> Result:
        async def run() -> Result:
            changes = RecurrenceUpdateRequest.model_validate(payload).to_update()
            update = await self._services.series.update_pattern(
                pattern_id, changes, regenerate_future
            )
            response: Result = {"success": True, "patternId": update.pattern.pattern_id}
            if update.regenerated is not None:
                response["appointmentIds"] = update.regenerated.appointment_ids
                response["partial"] = update.regenerated.partial
            return response

        return await self._guard("update_pattern", run)

    async def delete_pattern(self, pattern_id: str, cascade_delete: bool = False) -> Result:
        async def run() -> Result:
            await self._services.series.delete_pattern(pattern_id, cascade_delete)
            return {"success": True, "patternId": pattern_id, "message": "Recurrence pattern deleted."}

        return await self._guard("delete_pattern", run)

    async def book_appointment(self, payload: dict[str, Any]) -> Result:
        async def run() -> Result:
            request = AppointmentRequest.model_validate(payload)
            appointment = await self._services.booking.book(request.to_template())
            return {"success": True, "appointment": _appointment_summary(appointment)}

        return await self._guard("book_appointment", run)

    async def reschedule_appointment(self, appointment_id: str, payload: dict[str, Any]) -> Result:
        async def run() -> Result:
            request = RescheduleRequest.model_validate(payload)
            appointment = await self._services.booking.reschedule(
                appointment_id, request.start_time, request.end_time
            )
            return {"success": True, "appointment": _appointment_summary(appointment)}

        return await self._guard("reschedule_appointment", run)

    async def cancel_appointment(self, appointment_id: str) -> Result:
        async def run() -> Result:
            appointment = await self._services.booking.cancel(appointment_id)
            return {"success": True, "appointment": _appointment_summary(appointment)}

        return await self._guard("cancel_appointment", run)

    async def _guard(self, operation: str, run: Callable[[], Awaitable[Result]]) -> Result:
        logger.debug("Handler call: {}", operation)
        try:
            return await run()
        except pydantic.ValidationError as exc:
            return {
                "success": False,
                "error": True,
                "kind": "ValidationError",
                "message": _describe_validation(exc),
            }
        except SchedulingError as exc:
            return {
                "success": False,
                "error": True,
                "kind": type(exc).__name__,
                "message": str(exc),
            }
        except Exception:
            logger.exception("Unexpected error in {}", operation)
            return {
                "success": False,
                "error": True,
                "kind": "InternalError",
                "message": f"An unexpected error occurred in {operation}.",
            }
