"""
Appointment collaborator client.

Durable appointments live in the clinic backend; this module only knows how
to ask it to create one for a held slot, and how to take it back when the
hold cannot be confirmed.

Endpoints (clinic backend, trusted network):
- GET    /internal/appointments?tenant_id=&date=&time=[&resource_id=]
- POST   /internal/appointments
- DELETE /internal/appointments/{appointment_id}
"""

import logging
from abc import ABC, abstractmethod

import httpx

from .reservations.models import Reservation, SlotKey

logger = logging.getLogger(__name__)


class AppointmentError(Exception):
    """Collaborator could not look up/create/cancel the appointment."""


class AppointmentGateway(ABC):
    @abstractmethod
    async def slot_booked(self, slot_key: SlotKey) -> bool:
        """True when the slot already has an appointment."""

    @abstractmethod
    async def create_appointment(self, reservation: Reservation, details: dict) -> str:
        """Create the appointment for a held slot; returns its id."""

    @abstractmethod
    async def cancel_appointment(self, appointment_id: str) -> None:
        """Undo an appointment whose hold could not be confirmed."""


class HttpAppointmentGateway(AppointmentGateway):
    def __init__(
        self,
        base_url: str | None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        if not self.base_url:
            raise AppointmentError("APPOINTMENTS_API_URL not set")
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            follow_redirects=True,
        )

    async def slot_booked(self, slot_key: SlotKey) -> bool:
        params = {
            "tenant_id": slot_key.tenant_id,
            "date": slot_key.date.isoformat(),
            "time": slot_key.time_str,
        }
        if slot_key.resource_id:
            params["resource_id"] = slot_key.resource_id

        try:
            async with self._client() as client:
                response = await client.get("/internal/appointments", params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Appointment lookup failed for {slot_key.as_key()}: {e}")
            raise AppointmentError(str(e)) from e

        return len(data) > 0

    async def create_appointment(self, reservation: Reservation, details: dict) -> str:
        slot = reservation.slot_key
        body = {
            "tenant_id": slot.tenant_id,
            "date": slot.date.isoformat(),
            "time": slot.time_str,
            "resource_id": slot.resource_id,
            "reservation_id": reservation.id,
            **details,
        }

        try:
            async with self._client() as client:
                response = await client.post("/internal/appointments", json=body)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Appointment creation failed for {reservation.id}: {e}")
            raise AppointmentError(str(e)) from e

        appointment_id = data.get("id")
        if appointment_id is None:
            raise AppointmentError("Appointment service returned no id")

        logger.info(f"Appointment {appointment_id} created for reservation {reservation.id}")
        return str(appointment_id)

    async def cancel_appointment(self, appointment_id: str) -> None:
        try:
            async with self._client() as client:
                response = await client.delete(f"/internal/appointments/{appointment_id}")
                if response.status_code != 404:
                    response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Appointment cancel failed for {appointment_id}: {e}")
            raise AppointmentError(str(e)) from e

        logger.info(f"Appointment {appointment_id} cancelled")
