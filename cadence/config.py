from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreAdapter(Enum):
    MEMORY = "memory"
    HTTP = "http"


class SchedulingConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SCHEDULING_", env_file=".env", extra="ignore")

    # Hard cap on occurrences generated per call; longer series are built in batches.
    max_occurrence_ceiling: int = Field(default=52, ge=1)
    default_series_occurrences: int = Field(default=10, ge=1)
    min_duration_minutes: int = 15
    max_duration_minutes: int = 240
    allow_past_bookings: bool = False
    check_series_conflicts: bool = True


class PracticeApiConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PRACTICE_API_", env_file=".env", extra="ignore")

    base_url: str = "http://localhost:3001/api"
    email: str = ""
    password: str = ""
    token: str = ""
    timeout_seconds: float = 30.0


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    store_adapter: StoreAdapter = StoreAdapter.MEMORY
    scheduling: SchedulingConfig = Field(default_factory=lambda: SchedulingConfig())
    practice_api: PracticeApiConfig = Field(default_factory=lambda: PracticeApiConfig())
