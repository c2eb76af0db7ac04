# vetclinic/app/services/reservations/errors.py
"""
Error taxonomy for slot reservations.

Every error is an expected outcome of a booking attempt. Conflict and
Expired are recoverable by picking another slot / restarting the flow;
Unauthorized and InvalidTransition point at a bug in the caller.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ReservationStatus, SlotKey


class ReservationError(Exception):
    """Base class for reservation errors."""

    reason = "reservation_error"


class InvalidRequestError(ReservationError):
    """Malformed slot identity, missing session, or slot outside the bookable window."""

    reason = "invalid_request"


class ConflictError(ReservationError):
    """Slot is held by another session."""

    reason = "conflict"

    def __init__(self, slot_key: "SlotKey", retry_after_seconds: int):
        self.slot_key = slot_key
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            f"Slot {slot_key.as_key()} is already reserved "
            f"(retry after {retry_after_seconds}s)"
        )


class NotFoundError(ReservationError):
    """Unknown reservation id."""

    reason = "not_found"

    def __init__(self, reservation_id: str):
        self.reservation_id = reservation_id
        super().__init__(f"Reservation {reservation_id} not found")


class UnauthorizedError(ReservationError):
    """Session does not hold the reservation."""

    reason = "forbidden"

    def __init__(self, reservation_id: str):
        self.reservation_id = reservation_id
        super().__init__(f"Reservation {reservation_id} is held by another session")


class ExpiredError(ReservationError):
    """TTL lapsed before the operation."""

    reason = "expired"

    def __init__(self, reservation_id: str):
        self.reservation_id = reservation_id
        super().__init__(f"Reservation {reservation_id} has expired")


class InvalidTransitionError(ReservationError):
    """Reservation is not in the status the operation requires."""

    reason = "invalid_transition"

    def __init__(
        self,
        reservation_id: str,
        current: "ReservationStatus",
        expected: "ReservationStatus",
    ):
        self.reservation_id = reservation_id
        self.current = current
        self.expected = expected
        super().__init__(
            f"Reservation {reservation_id} is {current.value}, expected {expected.value}"
        )
