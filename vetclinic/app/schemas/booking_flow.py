# vetclinic/app/schemas/booking_flow.py
"""
Pydantic schemas for the booking dialog flow.
"""

from datetime import datetime

from pydantic import Field

from .reservations import CamelModel


class StartBookingRequest(CamelModel):
    tenant_id: str = Field(min_length=1)
    date: str = Field(description="YYYY-MM-DD")
    time: str = Field(description="HH:MM")
    resource_id: str | None = None
    session_id: str | None = Field(None, description="Minted by the server when absent")


class StartBookingResponse(CamelModel):
    session_id: str
    reservation_id: str
    expires_at: datetime
    expires_in: int


class CompleteBookingRequest(CamelModel):
    session_id: str = Field(min_length=1)
    client_id: str = Field(min_length=1)
    pet_id: str = Field(min_length=1)
    service_id: str = Field(min_length=1)
    notes: str | None = None


class CompleteBookingResponse(CamelModel):
    reservation_id: str
    appointment_id: str
    status: str


class CancelBookingRequest(CamelModel):
    session_id: str = Field(min_length=1)


class CancelBookingResponse(CamelModel):
    reservation_id: str
    status: str


class BookingErrorResponse(CamelModel):
    reason: str
    detail: str
    retry_after_seconds: int | None = None
