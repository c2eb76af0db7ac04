# vetclinic/app/services/reservations/store.py
"""
Reservation storage.

The store is the single owner of reservation records and the single source
of truth for slot availability:

    live index: SlotKey → Active reservation (at most one per key)
    by id:      reservation_id → record (live, or terminal kept for `retention`)

Check-and-set is atomic per slot key. A stale Active record
(expires_at <= now) is treated as vacant on read, so exclusivity never
depends on the sweeper having run.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import date, datetime, timedelta

from .errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    UnauthorizedError,
)
from .models import (
    Reservation,
    ReservationStatus,
    SlotKey,
    new_reservation_id,
    utcnow,
)


def check_transition(from_status: ReservationStatus, to_status: ReservationStatus) -> None:
    """Only Active → terminal is a legal CAS transition (renew goes through extend)."""
    if from_status is not ReservationStatus.ACTIVE or not to_status.is_terminal:
        raise ValueError(f"Illegal transition {from_status.value} → {to_status.value}")


class ReservationStore(ABC):
    """Keyed table of slot holds with atomic check-and-set."""

    @abstractmethod
    def try_reserve(
        self,
        slot_key: SlotKey,
        session_id: str,
        ttl: timedelta,
        now: datetime | None = None,
    ) -> Reservation:
        """
        Hold a slot for `ttl`.

        Returns the new reservation, or the existing one when the same
        session already holds the slot. Raises ConflictError when another
        session holds a live reservation.
        """

    @abstractmethod
    def get(self, slot_key: SlotKey) -> Reservation | None:
        """Current entry of the live index for a slot."""

    @abstractmethod
    def get_by_id(self, reservation_id: str) -> Reservation | None:
        """Live or retained reservation by id."""

    @abstractmethod
    def transition(
        self,
        reservation_id: str,
        session_id: str,
        from_status: ReservationStatus,
        to_status: ReservationStatus,
        now: datetime | None = None,
    ) -> Reservation:
        """
        Compare-and-swap the reservation status.

        Raises NotFoundError, UnauthorizedError or InvalidTransitionError
        (in that order of precedence).
        """

    @abstractmethod
    def extend(
        self,
        reservation_id: str,
        session_id: str,
        ttl: timedelta,
        now: datetime | None = None,
    ) -> Reservation:
        """Move expires_at to now + ttl on a live reservation held by session_id."""

    @abstractmethod
    def sweep_expired(self, now: datetime | None = None) -> int:
        """Expire stale Active reservations; returns how many were evicted."""

    @abstractmethod
    def list_active(
        self,
        tenant_id: str,
        dt: date,
        now: datetime | None = None,
    ) -> list[Reservation]:
        """Live reservations of a tenant for one day, ordered by time."""

    def ping(self) -> bool:
        return True


class InMemoryReservationStore(ReservationStore):
    """
    Process-local store for single-instance deployments.

    Per-key serialization uses a fixed pool of striped locks, so holds on
    different slots rarely contend. `_index_lock` only guards the O(1)
    dict updates and snapshots.
    """

    STRIPES = 64

    def __init__(self, retention: timedelta = timedelta(seconds=60)):
        self.retention = retention
        self._live: dict[SlotKey, Reservation] = {}
        self._by_id: dict[str, Reservation] = {}
        self._index_lock = threading.Lock()
        self._stripes = [threading.Lock() for _ in range(self.STRIPES)]

    def _lock_for(self, slot_key: SlotKey) -> threading.Lock:
        return self._stripes[hash(slot_key) % self.STRIPES]

    def _store(self, record: Reservation) -> Reservation:
        with self._index_lock:
            self._by_id[record.id] = record
            if record.status is ReservationStatus.ACTIVE:
                self._live[record.slot_key] = record
            elif (live := self._live.get(record.slot_key)) is not None and live.id == record.id:
                del self._live[record.slot_key]
        return record

    def _close(
        self,
        record: Reservation,
        status: ReservationStatus,
        now: datetime,
    ) -> Reservation:
        return self._store(replace(record, status=status, closed_at=now))

    # ── Write ────────────────────────────────────────────────────────────

    def try_reserve(self, slot_key, session_id, ttl, now=None):
        now = now or utcnow()
        with self._lock_for(slot_key):
            current = self._live.get(slot_key)
            if current is not None:
                if current.expires_at > now:
                    if current.session_id == session_id:
                        return current
                    raise ConflictError(slot_key, current.remaining_seconds(now))
                # Stale hold the sweeper has not reached yet
                self._close(current, ReservationStatus.EXPIRED, now)

            reservation = Reservation(
                id=new_reservation_id(),
                slot_key=slot_key,
                session_id=session_id,
                created_at=now,
                expires_at=now + ttl,
            )
            return self._store(reservation)

    def transition(self, reservation_id, session_id, from_status, to_status, now=None):
        check_transition(from_status, to_status)
        now = now or utcnow()
        record = self._require(reservation_id)
        with self._lock_for(record.slot_key):
            record = self._owned(reservation_id, session_id, now)
            if record.status is not from_status:
                raise InvalidTransitionError(reservation_id, record.status, from_status)
            return self._close(record, to_status, now)

    def extend(self, reservation_id, session_id, ttl, now=None):
        now = now or utcnow()
        record = self._require(reservation_id)
        with self._lock_for(record.slot_key):
            record = self._owned(reservation_id, session_id, now)
            if record.status is not ReservationStatus.ACTIVE:
                raise InvalidTransitionError(
                    reservation_id, record.status, ReservationStatus.ACTIVE
                )
            return self._store(replace(record, expires_at=now + ttl))

    def _require(self, reservation_id: str) -> Reservation:
        record = self._by_id.get(reservation_id)
        if record is None:
            raise NotFoundError(reservation_id)
        return record

    def _owned(self, reservation_id: str, session_id: str, now: datetime) -> Reservation:
        """Re-read under the slot lock, check the holder, expire lazily."""
        record = self._by_id.get(reservation_id)
        if record is None:
            raise NotFoundError(reservation_id)
        if record.session_id != session_id:
            raise UnauthorizedError(reservation_id)
        if record.status is ReservationStatus.ACTIVE and record.expires_at <= now:
            record = self._close(record, ReservationStatus.EXPIRED, now)
        return record

    def sweep_expired(self, now=None):
        now = now or utcnow()
        with self._index_lock:
            live = list(self._live.items())

        evicted = 0
        for slot_key, record in live:
            if record.expires_at > now:
                continue
            with self._lock_for(slot_key):
                current = self._live.get(slot_key)
                if current is None or current.expires_at > now:
                    continue
                self._close(current, ReservationStatus.EXPIRED, now)
                evicted += 1

        self._purge_closed(now)
        return evicted

    def _purge_closed(self, now: datetime) -> int:
        cutoff = now - self.retention
        with self._index_lock:
            stale = [
                r.id for r in self._by_id.values()
                if r.closed_at is not None and r.closed_at <= cutoff
            ]
            for reservation_id in stale:
                del self._by_id[reservation_id]
        return len(stale)

    # ── Read ─────────────────────────────────────────────────────────────

    def get(self, slot_key):
        return self._live.get(slot_key)

    def get_by_id(self, reservation_id):
        return self._by_id.get(reservation_id)

    def list_active(self, tenant_id, dt, now=None):
        now = now or utcnow()
        with self._index_lock:
            live = list(self._live.values())
        return sorted(
            (
                r for r in live
                if r.slot_key.tenant_id == tenant_id
                and r.slot_key.date == dt
                and r.is_live(now)
            ),
            key=lambda r: (r.slot_key.time, r.slot_key.resource_id or ""),
        )
