import datetime as dt
from typing import Any

import httpx
from loguru import logger

from cadence.domain.exceptions import StoreUnavailableError
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
from cadence.scheduling.time_helpers import format_instant
from cadence.store.adapters.serialization import (
    appointment_from_json,
    appointment_to_json,
    equipment_from_json,
    fields_to_json,
    pattern_from_json,
    room_from_json,
    rule_to_json,
    therapist_from_json,
)


class PracticeApiClient:
    """Authenticated JSON client for the practice backend's REST API."""

    def __init__(
        self,
        base_url: str,
        *,
        email: str = "",
        password: str = "",
        token: str = "",
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._email = email
        self._password = password
        self._token: str | None = token or None
        self._client = httpx.AsyncClient(timeout=timeout)

    async def _ensure_authenticated(self) -> str:
        """Return a valid bearer token, logging in if necessary."""
        if self._token:
            return self._token

        if not self._email or not self._password:
            raise StoreUnavailableError("No email/password credentials configured for the practice API")

        logger.info("Authenticating with the practice API...")
        try:
            resp = await self._client.post(
                f"{self._base_url}/auth/login",
                json={"email": self._email, "password": self._password},
            )
            resp.raise_for_status()
            data: dict[str, Any] = resp.json()
        except Exception as exc:
            raise StoreUnavailableError(f"Practice API login failed: {exc}") from exc

        token: str | None = data.get("accessToken") or data.get("access_token")
        if not token:
            raise StoreUnavailableError("Practice API login returned no token")

        self._token = token
        logger.info("Authenticated with the practice API; token cached")
        return token

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        allow_missing: bool = False,
        _retry_on_auth: bool = True,
    ) -> Any:
        """Send an authenticated request and return the decoded JSON body.

        Returns None for an empty body, or for a 404 when ``allow_missing``.
        """
        token = await self._ensure_authenticated()
        try:
            resp = await self._client.request(
                method,
                f"{self._base_url}{path}",
                headers={"Authorization": f"Bearer {token}"},
                params={k: v for k, v in (params or {}).items() if v is not None},
                json=json,
            )
            if allow_missing and resp.status_code == 404:
                return None
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if _retry_on_auth and status in {401, 403}:
                logger.warning("Practice API token rejected (status {}), re-authenticating", status)
                self._token = None
                return await self.request(
                    method,
                    path,
                    params=params,
                    json=json,
                    allow_missing=allow_missing,
                    _retry_on_auth=False,
                )
            raise StoreUnavailableError(f"Practice API request failed: {exc}") from exc
        except Exception as exc:
            raise StoreUnavailableError(f"Practice API request failed: {exc}") from exc

        if not resp.content:
            return None
        return resp.json()

    async def health_check(self) -> bool:
        try:
            await self.request("GET", "/health")
            return True
        except Exception as exc:
            logger.warning("Practice API health check failed: {}", exc)
            return False

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Practice API client closed")


class HttpAppointmentStore:
    """``AppointmentStore`` backed by the practice API's appointment endpoints."""

    def __init__(self, client: PracticeApiClient) -> None:
        self._client = client

    async def find_overlapping(
        self,
        kind: ResourceKind,
        resource_id: str,
        interval: TimeInterval,
        exclude_id: str | None = None,
    ) -> list[Appointment]:
        data = await self._client.request(
            "GET",
            "/appointments/overlapping",
            params={
                "resourceKind": kind.value,
                "resourceId": resource_id,
                "start": format_instant(interval.start),
                "end": format_instant(interval.end),
                "excludeId": exclude_id,
            },
        )
        return [appointment_from_json(a) for a in data or []]

    async def create(self, appointment: NewAppointment) -> Appointment:
        data = await self._client.request(
            "POST", "/appointments", json=appointment_to_json(appointment)
        )
        return appointment_from_json(data)

    async def get(self, appointment_id: str) -> Appointment | None:
        data = await self._client.request(
            "GET", f"/appointments/{appointment_id}", allow_missing=True
        )
        return appointment_from_json(data) if data else None

    async def update(self, appointment_id: str, fields: dict[str, Any]) -> Appointment:
        data = await self._client.request(
            "PATCH", f"/appointments/{appointment_id}", json=fields_to_json(fields)
        )
        return appointment_from_json(data)

    async def delete(self, appointment_id: str) -> None:
        await self._client.request("DELETE", f"/appointments/{appointment_id}")

    async def find_by_pattern(
        self, pattern_id: str, starting_at: dt.datetime | None = None
    ) -> list[Appointment]:
        data = await self._client.request(
            "GET",
            f"/recurrence-patterns/{pattern_id}/appointments",
            params={"from": format_instant(starting_at) if starting_at else None},
        )
        appointments = [appointment_from_json(a) for a in data or []]
        return sorted(appointments, key=lambda a: a.interval.start)


class HttpPatternStore:
    """``RecurrencePatternStore`` backed by the practice API."""

    def __init__(self, client: PracticeApiClient) -> None:
        self._client = client

    async def create(self, rule: RecurrenceRule) -> RecurrencePattern:
        data = await self._client.request("POST", "/recurrence-patterns", json=rule_to_json(rule))
        return pattern_from_json(data)

    async def get(self, pattern_id: str) -> RecurrencePattern | None:
        data = await self._client.request(
            "GET", f"/recurrence-patterns/{pattern_id}", allow_missing=True
        )
        return pattern_from_json(data) if data else None

    async def update(self, pattern_id: str, rule: RecurrenceRule) -> RecurrencePattern:
        data = await self._client.request(
            "PUT", f"/recurrence-patterns/{pattern_id}", json=rule_to_json(rule)
        )
        return pattern_from_json(data)

    async def delete(self, pattern_id: str) -> None:
        await self._client.request("DELETE", f"/recurrence-patterns/{pattern_id}")


class HttpResourceDirectory:
    """``ResourceDirectory`` backed by the practice API's user and resource endpoints."""

    def __init__(self, client: PracticeApiClient) -> None:
        self._client = client

    async def get_therapist(self, therapist_id: str) -> Therapist | None:
        data = await self._client.request("GET", f"/users/{therapist_id}", allow_missing=True)
        return therapist_from_json(data) if data else None

    async def get_room(self, room_id: str) -> Room | None:
        data = await self._client.request("GET", f"/therapy-rooms/{room_id}", allow_missing=True)
        return room_from_json(data) if data else None

    async def get_equipment(self, equipment_id: str) -> Equipment | None:
        data = await self._client.request(
            "GET", f"/therapy-equipment/{equipment_id}", allow_missing=True
        )
        return equipment_from_json(data) if data else None

    async def client_exists(self, client_id: str) -> bool:
        data = await self._client.request("GET", f"/clients/{client_id}", allow_missing=True)
        return data is not None

    async def learner_exists(self, learner_id: str) -> bool:
        data = await self._client.request("GET", f"/learners/{learner_id}", allow_missing=True)
        return data is not None
