# vetclinic/app/services/reservations/service.py
"""
Reservation service: the caller-facing API over a ReservationStore.

Validates slot identity, applies tenant TTLs, and folds store outcomes into
the reservation error taxonomy:

    reserve  → Reservation | ConflictError | InvalidRequestError
    renew    → Reservation | ExpiredError | NotFound/Unauthorized/InvalidTransition
    release  → Reservation | None (idempotent) | UnauthorizedError
    confirm  → Reservation | ExpiredError | InvalidTransitionError | NotFound/Unauthorized
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Callable

from ..events import EventEmitter
from .config import ReservationConfig
from .errors import (
    ConflictError,
    ExpiredError,
    InvalidRequestError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
)
from .models import Reservation, ReservationStatus, SlotKey, check_identifier, utcnow
from .store import ReservationStore

logger = logging.getLogger(__name__)


class ReservationService:
    def __init__(
        self,
        store: ReservationStore,
        config: ReservationConfig,
        clock: Callable[[], datetime] = utcnow,
        events: EventEmitter | None = None,
    ):
        self.store = store
        self.config = config
        self.clock = clock
        self.events = events

    def _emit(self, event_type: str, reservation: Reservation) -> None:
        if self.events is None:
            return
        self.events.emit(event_type, {
            "reservation_id": reservation.id,
            "tenant_id": reservation.slot_key.tenant_id,
            "date": reservation.slot_key.date.isoformat(),
            "time": reservation.slot_key.time_str,
            "resource_id": reservation.slot_key.resource_id,
            "status": reservation.status.value,
            "expires_at": reservation.expires_at.isoformat(),
        })

    # ── Reserve ──────────────────────────────────────────────────────────

    def reserve(
        self,
        tenant_id: str,
        date_value: date | str,
        time_value: time | str,
        session_id: str,
        resource_id: str | None = None,
    ) -> Reservation:
        """
        Hold a slot for the session's booking attempt.

        Repeating the call from the same session returns the same hold.
        """
        if not session_id or not session_id.strip():
            raise InvalidRequestError("session_id is required")

        slot_key = SlotKey.parse(tenant_id, date_value, time_value, resource_id)
        now = self.clock()
        self._check_bookable(slot_key, now)

        previous = self.store.get(slot_key)
        try:
            reservation = self.store.try_reserve(
                slot_key, session_id, self.config.ttl_for(slot_key.tenant_id), now
            )
        except ConflictError as e:
            logger.info(f"Slot conflict: {slot_key.as_key()} (retry after {e.retry_after_seconds}s)")
            raise

        if previous is None or previous.id != reservation.id:
            logger.info(f"Slot reserved: {slot_key.as_key()} → {reservation.id}")
            self._emit("slot_reserved", reservation)
        return reservation

    def _check_bookable(self, slot_key: SlotKey, now: datetime) -> None:
        tz = self.config.tz
        starts_at = slot_key.starts_at(tz)
        if starts_at < now:
            raise InvalidRequestError("Cannot reserve slots in the past")

        max_date = now.astimezone(tz).date() + timedelta(days=self.config.horizon_days)
        if slot_key.date > max_date:
            raise InvalidRequestError(
                f"Date cannot be more than {self.config.horizon_days} days ahead"
            )

    # ── Renew / Release / Confirm ────────────────────────────────────────

    def renew(self, reservation_id: str, session_id: str) -> Reservation:
        """Restart the TTL window from now on a live hold."""
        record = self._require(reservation_id)
        ttl = self.config.ttl_for(record.slot_key.tenant_id)
        try:
            reservation = self.store.extend(reservation_id, session_id, ttl, self.clock())
        except InvalidTransitionError as e:
            if e.current is ReservationStatus.EXPIRED:
                raise ExpiredError(reservation_id) from e
            logger.error(f"Caller bug: renew on {e.current.value} reservation {reservation_id}")
            raise
        except UnauthorizedError:
            logger.error(f"Caller bug: renew of {reservation_id} by a foreign session")
            raise

        self._emit("slot_renewed", reservation)
        return reservation

    def release(self, reservation_id: str, session_id: str) -> Reservation | None:
        """
        Free the slot early (user cancelled, dialog closed, disconnect).

        Releasing a reservation that is already terminal, or already purged,
        is a no-op success: a cancel racing the sweeper must not fail.
        """
        try:
            reservation = self.store.transition(
                reservation_id,
                session_id,
                ReservationStatus.ACTIVE,
                ReservationStatus.RELEASED,
                self.clock(),
            )
        except NotFoundError:
            logger.debug(f"Release of unknown reservation {reservation_id}, ignoring")
            return None
        except InvalidTransitionError as e:
            if e.current is ReservationStatus.CONFIRMED:
                logger.warning(f"Release of confirmed reservation {reservation_id}, ignoring")
            return self.store.get_by_id(reservation_id)
        except UnauthorizedError:
            logger.error(f"Caller bug: release of {reservation_id} by a foreign session")
            raise

        logger.info(f"Slot released: {reservation.slot_key.as_key()} ({reservation_id})")
        self._emit("slot_released", reservation)
        return reservation

    def confirm(self, reservation_id: str, session_id: str) -> Reservation:
        """Promote a live hold to Confirmed; an expired hold cannot be confirmed."""
        try:
            reservation = self.store.transition(
                reservation_id,
                session_id,
                ReservationStatus.ACTIVE,
                ReservationStatus.CONFIRMED,
                self.clock(),
            )
        except InvalidTransitionError as e:
            if e.current is ReservationStatus.EXPIRED:
                logger.info(f"Confirm after expiry: {reservation_id}")
                raise ExpiredError(reservation_id) from e
            logger.error(f"Caller bug: confirm on {e.current.value} reservation {reservation_id}")
            raise
        except UnauthorizedError:
            logger.error(f"Caller bug: confirm of {reservation_id} by a foreign session")
            raise

        logger.info(f"Slot confirmed: {reservation.slot_key.as_key()} ({reservation_id})")
        self._emit("slot_confirmed", reservation)
        return reservation

    # ── Read / maintenance ───────────────────────────────────────────────

    def _require(self, reservation_id: str) -> Reservation:
        record = self.store.get_by_id(reservation_id)
        if record is None:
            raise NotFoundError(reservation_id)
        return record

    def get_status(self, reservation_id: str) -> tuple[Reservation, int]:
        """
        Reservation plus remaining TTL in seconds (UI countdown).

        A hold past its deadline reads as expired even before the sweep.
        """
        record = self._require(reservation_id)
        return record, record.remaining_seconds(self.clock())

    def is_expired(self, reservation: Reservation) -> bool:
        if reservation.status is ReservationStatus.EXPIRED:
            return True
        return reservation.status is ReservationStatus.ACTIVE and not reservation.is_live(self.clock())

    def list_active(self, tenant_id: str, date_value: date | str) -> list[Reservation]:
        """Live holds of a tenant for one day."""
        tenant_id = check_identifier("tenant_id", tenant_id)
        if isinstance(date_value, str):
            try:
                date_value = date.fromisoformat(date_value)
            except ValueError:
                raise InvalidRequestError("Invalid date format, expected YYYY-MM-DD")
        return self.store.list_active(tenant_id, date_value, self.clock())

    def sweep(self) -> int:
        """Evict expired holds now; returns the number evicted."""
        evicted = self.store.sweep_expired(self.clock())
        if evicted and self.events is not None:
            self.events.emit("slots_expired", {"count": evicted})
        return evicted
