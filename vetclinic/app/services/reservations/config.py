# vetclinic/app/services/reservations/config.py
"""
Reservation configuration for slot holds.
"""

from dataclasses import dataclass, field
from datetime import timedelta, timezone, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo

from ...config import settings


@dataclass(frozen=True)
class ReservationConfig:
    """
    Configuration for the slot reservation engine.

    Attributes:
        ttl_seconds: How long a hold lives before it expires (default TTL)
        sweep_interval_seconds: Period of the background expiration sweep
        retention_seconds: How long terminal reservations stay readable by id
        horizon_days: How many days ahead a slot may be held
        tenant_ttl_overrides: Per-tenant TTL in seconds (tenant_id → seconds)
        timezone: Zone in which slot date/time are interpreted
    """
    ttl_seconds: int = 300
    sweep_interval_seconds: int = 30
    retention_seconds: int = 60
    horizon_days: int = 60
    tenant_ttl_overrides: dict[str, int] = field(default_factory=dict)
    timezone: str = "UTC"

    def __post_init__(self):
        """Validate configuration."""
        ttls = [self.ttl_seconds, *self.tenant_ttl_overrides.values()]
        if min(ttls) <= 0:
            raise ValueError(f"reservation TTL must be positive, got {min(ttls)}")
        if self.sweep_interval_seconds <= 0:
            raise ValueError(
                f"sweep_interval_seconds must be positive, got {self.sweep_interval_seconds}"
            )
        if self.sweep_interval_seconds * 2 > min(ttls):
            raise ValueError(
                f"sweep_interval_seconds ({self.sweep_interval_seconds}) must be "
                f"at most half of the shortest TTL ({min(ttls)})"
            )
        if self.retention_seconds < 0:
            raise ValueError(f"retention_seconds must be >= 0, got {self.retention_seconds}")
        if self.horizon_days < 0:
            raise ValueError(f"horizon_days must be >= 0, got {self.horizon_days}")

    def ttl_for(self, tenant_id: str) -> timedelta:
        """TTL window for a tenant (override or default)."""
        seconds = self.tenant_ttl_overrides.get(tenant_id, self.ttl_seconds)
        return timedelta(seconds=seconds)

    @property
    def retention(self) -> timedelta:
        return timedelta(seconds=self.retention_seconds)

    @property
    def tz(self) -> tzinfo:
        if self.timezone.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.timezone)


@lru_cache
def get_reservation_config() -> ReservationConfig:
    """Get reservation configuration (singleton, built from environment)."""
    return ReservationConfig(
        ttl_seconds=settings.reservation_ttl_seconds,
        sweep_interval_seconds=settings.sweep_interval_seconds,
        retention_seconds=settings.reservation_retention_seconds,
        horizon_days=settings.reservation_horizon_days,
        tenant_ttl_overrides=dict(settings.tenant_ttl_overrides),
        timezone=settings.slot_timezone,
    )
