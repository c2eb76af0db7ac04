# vetclinic/app/schemas/reservations.py
"""
Pydantic schemas for slot reservation API.

JSON bodies use camelCase (tenantId, sessionId, ...); snake_case field names
are accepted on input as well.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ReserveRequest(CamelModel):
    """Request to hold a slot."""
    tenant_id: str = Field(min_length=1)
    date: str = Field(description="YYYY-MM-DD")
    time: str = Field(description="HH:MM")
    resource_id: str | None = None
    session_id: str = Field(min_length=1)


class ReserveResponse(CamelModel):
    reservation_id: str
    expires_at: datetime
    expires_in: int = Field(description="Seconds until reservation expires")


class SessionRequest(CamelModel):
    """Body of renew / confirm / release: proves who holds the reservation."""
    session_id: str = Field(min_length=1)


class RenewResponse(CamelModel):
    reservation_id: str
    expires_at: datetime
    expires_in: int


class ConfirmResponse(CamelModel):
    reservation_id: str
    status: str


class ReleaseResponse(CamelModel):
    reservation_id: str
    status: str = Field(description="released | expired | confirmed | unknown")


class ReservationStatusResponse(CamelModel):
    """Status of a reservation (for UI countdown)."""
    reservation_id: str
    tenant_id: str
    date: str
    time: str
    resource_id: str | None = None
    status: str = Field(description="active | confirmed | released | expired")
    expires_at: datetime
    remaining_seconds: int


class ReservedSlot(CamelModel):
    reservation_id: str
    time: str
    resource_id: str | None = None
    expires_at: datetime


class ReservedSlotsResponse(CamelModel):
    """Live holds of a tenant for one day (calendar greys them out)."""
    tenant_id: str
    date: str
    slots: list[ReservedSlot]


class ConflictResponse(CamelModel):
    conflict: bool = True
    retry_after_seconds: int
    detail: str


class SweepResponse(CamelModel):
    evicted: int
