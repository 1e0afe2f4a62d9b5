from dataclasses import dataclass
from typing import Callable

from loguru import logger

from cadence.config import AppConfig, StoreAdapter
from cadence.scheduling.booking import BookingService
from cadence.scheduling.conflicts import ConflictChecker
from cadence.scheduling.series import RecurrenceExpander
from cadence.store.adapters.http import (
    HttpAppointmentStore,
    HttpPatternStore,
    HttpResourceDirectory,
    PracticeApiClient,
)
from cadence.store.adapters.memory import (
    InMemoryAppointmentStore,
    InMemoryPatternStore,
    InMemoryResourceDirectory,
)
from cadence.store.ports import AppointmentStore, RecurrencePatternStore, ResourceDirectory


@dataclass
class Stores:
    appointments: AppointmentStore
    patterns: RecurrencePatternStore
    resources: ResourceDirectory
    api_client: PracticeApiClient | None = None


@dataclass
class SchedulingServices:
    """The wired scheduling core, ready for a caller-facing layer."""

    checker: ConflictChecker
    series: RecurrenceExpander
    booking: BookingService
    stores: Stores

    async def close(self) -> None:
        if self.stores.api_client is not None:
            await self.stores.api_client.close()


def _build_memory(config: AppConfig) -> Stores:
    return Stores(
        appointments=InMemoryAppointmentStore(),
        patterns=InMemoryPatternStore(),
        resources=InMemoryResourceDirectory(),
    )


def _build_http(config: AppConfig) -> Stores:
    client = PracticeApiClient(
        base_url=config.practice_api.base_url,
        email=config.practice_api.email,
        password=config.practice_api.password,
        token=config.practice_api.token,
        timeout=config.practice_api.timeout_seconds,
    )
    return Stores(
        appointments=HttpAppointmentStore(client),
        patterns=HttpPatternStore(client),
        resources=HttpResourceDirectory(client),
        api_client=client,
    )


_BUILDERS: dict[StoreAdapter, Callable[[AppConfig], Stores]] = {
    StoreAdapter.MEMORY: _build_memory,
    StoreAdapter.HTTP: _build_http,
}


def build_services(config: AppConfig, stores: Stores | None = None) -> SchedulingServices:
    """Wire the scheduling core over the configured stores (or the ones given)."""
    if stores is None:
        logger.info("Building scheduling services with store adapter: {}", config.store_adapter.value)
        stores = _BUILDERS[config.store_adapter](config)

    checker = ConflictChecker(stores.appointments, stores.resources)
    return SchedulingServices(
        checker=checker,
        series=RecurrenceExpander(
            stores.appointments, stores.patterns, checker, config=config.scheduling
        ),
        booking=BookingService(
            stores.appointments, stores.resources, checker, config=config.scheduling
        ),
        stores=stores,
    )
