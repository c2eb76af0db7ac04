# vetclinic/app/config.py

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repo root


class Settings(BaseSettings):
    # Slot holds
    reservation_ttl_seconds: int = 300
    sweep_interval_seconds: int = 30
    reservation_retention_seconds: int = 60
    reservation_horizon_days: int = 60
    tenant_ttl_overrides: dict[str, int] = {}
    slot_timezone: str = "UTC"

    # Storage
    reservation_store: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"

    # Appointment collaborator
    appointments_api_url: str | None = None
    appointments_api_timeout: float = 10.0

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def uses_redis(self) -> bool:
        return self.reservation_store == "redis"


settings = Settings()
