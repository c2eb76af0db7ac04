"""
Booking flow adapter.

The seam between the booking dialog (UI/API) and the reservation engine:

1. start    - dialog opens: mint a session id, make sure the slot has no
              appointment yet, hold the slot
2. complete - user submits client/pet/service: renew the hold, create the
              appointment, confirm the hold
3. cancel   - dialog closed, navigation away, disconnect: release the hold

Ordering for complete (no two-phase commit with the appointment backend):
- the hold is renewed first, so an expired hold fails before any durable
  write and the collaborator call runs inside a full TTL window;
- the appointment is created while the hold is still Active;
- the hold is confirmed last. If the appointment cannot be created the hold
  is released; if the hold cannot be confirmed the appointment is cancelled.

Errors never leave this module: every outcome is a BookingOutcome.
Conflict and Expired are reported as "slot no longer available" and are
never retried here.
"""

import logging
from dataclasses import dataclass
from datetime import date, time
from uuid import uuid4

from .appointments import AppointmentError, AppointmentGateway
from .reservations.errors import (
    ConflictError,
    ExpiredError,
    ReservationError,
    UnauthorizedError,
)
from .reservations.models import Reservation, SlotKey
from .reservations.service import ReservationService

logger = logging.getLogger(__name__)

SLOT_UNAVAILABLE_MESSAGE = "This slot is no longer available. Please choose another time."
SLOT_BOOKED_MESSAGE = "This slot is already booked. Please choose another time."


@dataclass(frozen=True)
class BookingOutcome:
    ok: bool
    session_id: str | None = None
    reservation: Reservation | None = None
    appointment_id: str | None = None
    reason: str | None = None
    message: str | None = None
    retry_after_seconds: int | None = None

    @property
    def slot_unavailable(self) -> bool:
        return self.reason in ("conflict", "expired")


def _failure(error: ReservationError, session_id: str | None = None) -> BookingOutcome:
    if isinstance(error, ConflictError):
        return BookingOutcome(
            ok=False,
            session_id=session_id,
            reason=error.reason,
            message=SLOT_UNAVAILABLE_MESSAGE,
            retry_after_seconds=error.retry_after_seconds,
        )
    if isinstance(error, ExpiredError):
        return BookingOutcome(
            ok=False, session_id=session_id, reason=error.reason, message=SLOT_UNAVAILABLE_MESSAGE
        )
    return BookingOutcome(ok=False, session_id=session_id, reason=error.reason, message=str(error))


class BookingFlow:
    def __init__(self, service: ReservationService, appointments: AppointmentGateway):
        self.service = service
        self.appointments = appointments

    @staticmethod
    def new_session_id() -> str:
        return uuid4().hex

    async def start(
        self,
        tenant_id: str,
        date_value: date | str,
        time_value: time | str,
        resource_id: str | None = None,
        session_id: str | None = None,
    ) -> BookingOutcome:
        """Hold the slot before the multi-step form is shown."""
        session_id = session_id or self.new_session_id()
        try:
            slot_key = SlotKey.parse(tenant_id, date_value, time_value, resource_id)
        except ReservationError as e:
            return _failure(e, session_id)

        try:
            booked = await self.appointments.slot_booked(slot_key)
        except AppointmentError as e:
            return BookingOutcome(
                ok=False, session_id=session_id, reason="appointment_failed", message=str(e)
            )
        if booked:
            logger.info(f"Slot already booked: {slot_key.as_key()}")
            return BookingOutcome(
                ok=False, session_id=session_id, reason="conflict", message=SLOT_BOOKED_MESSAGE
            )

        try:
            reservation = self.service.reserve(
                slot_key.tenant_id,
                slot_key.date,
                slot_key.time,
                session_id,
                resource_id=slot_key.resource_id,
            )
        except ReservationError as e:
            return _failure(e, session_id)

        return BookingOutcome(ok=True, session_id=session_id, reservation=reservation)

    async def complete(
        self,
        reservation_id: str,
        session_id: str,
        details: dict,
    ) -> BookingOutcome:
        """Turn the hold into an appointment."""
        try:
            reservation = self.service.renew(reservation_id, session_id)
        except ReservationError as e:
            return _failure(e, session_id)

        try:
            appointment_id = await self.appointments.create_appointment(reservation, details)
        except AppointmentError as e:
            logger.warning(f"Booking {reservation_id}: appointment creation failed, releasing hold")
            self._release_quietly(reservation_id, session_id)
            return BookingOutcome(
                ok=False,
                session_id=session_id,
                reservation=reservation,
                reason="appointment_failed",
                message=str(e),
            )

        try:
            reservation = self.service.confirm(reservation_id, session_id)
        except ReservationError as e:
            logger.warning(
                f"Booking {reservation_id}: confirm failed ({e.reason}), "
                f"cancelling appointment {appointment_id}"
            )
            await self._cancel_appointment_quietly(appointment_id)
            return _failure(e, session_id)

        return BookingOutcome(
            ok=True,
            session_id=session_id,
            reservation=reservation,
            appointment_id=appointment_id,
        )

    def cancel(self, reservation_id: str, session_id: str) -> BookingOutcome:
        """Release the hold (cancel button, dialog closed, navigation, disconnect)."""
        try:
            reservation = self.service.release(reservation_id, session_id)
        except ReservationError as e:
            return _failure(e, session_id)
        return BookingOutcome(ok=True, session_id=session_id, reservation=reservation)

    def _release_quietly(self, reservation_id: str, session_id: str) -> None:
        try:
            self.service.release(reservation_id, session_id)
        except UnauthorizedError:
            logger.exception(f"Compensating release failed for {reservation_id}")

    async def _cancel_appointment_quietly(self, appointment_id: str) -> None:
        try:
            await self.appointments.cancel_appointment(appointment_id)
        except AppointmentError:
            # Left for manual cleanup; the slot itself is already free
            logger.exception(f"Compensating cancel failed for appointment {appointment_id}")
