# vetclinic/app/services/reservations/redis_store.py
"""
Redis storage for slot holds (multi-instance deployments).

Keys:
    slot_reserve:slot:{tenant}:{date}:{HH:MM}[:{resource}] → reservation id
    slot_reserve:res:{id}                                  → JSON record
    slot_reserve:active                                    → Sorted Set,
        member = reservation id, score = expires_ts

Every mutation runs in a WATCH/MULTI transaction over the slot key and the
record key, so two instances racing for one slot cannot both commit.
Terminal records keep a TTL of `retention` and then vanish on their own.
"""

import json
import logging
import math
import re
from dataclasses import replace
from datetime import datetime, timedelta

from redis import Redis
from redis.client import Pipeline

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
from .store import ReservationStore, check_transition

logger = logging.getLogger(__name__)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def _glob_escape(value: str) -> str:
    """Make `value` match itself literally inside a SCAN MATCH pattern."""
    return _GLOB_SPECIAL.sub(r"\\\1", value)


class RedisReservationStore(ReservationStore):
    """Redis-backed store with optimistic check-and-set."""

    KEY_PREFIX = "slot_reserve"

    def __init__(self, redis: Redis, retention: timedelta = timedelta(seconds=60)):
        self.redis = redis
        self.retention = retention

    def _slot_key(self, slot_key: SlotKey) -> str:
        return f"{self.KEY_PREFIX}:slot:{slot_key.as_key()}"

    def _record_key(self, reservation_id: str) -> str:
        return f"{self.KEY_PREFIX}:res:{reservation_id}"

    @property
    def _active_key(self) -> str:
        return f"{self.KEY_PREFIX}:active"

    # ── Serialization ────────────────────────────────────────────────────

    def _load(self, client: Redis | Pipeline, reservation_id: str | None) -> Reservation | None:
        if not reservation_id:
            return None
        raw = client.get(self._record_key(reservation_id))
        if not raw:
            return None
        try:
            return Reservation.from_dict(json.loads(raw))
        except (json.JSONDecodeError, KeyError, ValueError):
            logger.error(f"Invalid reservation record: {reservation_id}")
            return None

    def _write(
        self,
        pipe: Pipeline,
        record: Reservation,
        owner_id: str | None,
        now: datetime,
    ) -> None:
        """
        Queue the commands that persist `record` (pipe must be in MULTI).

        Key lifetimes are relative to `now`: time left on the hold plus the
        retention window. They only bound memory; status logic never relies
        on Redis expiry.
        """
        record_key = self._record_key(record.id)
        slot_key = self._slot_key(record.slot_key)
        pipe.set(record_key, json.dumps(record.to_dict()))

        if record.status is ReservationStatus.ACTIVE:
            keep_for = self._seconds(record.expires_at - now + self.retention)
            pipe.expire(record_key, keep_for)
            pipe.set(slot_key, record.id)
            pipe.expire(slot_key, keep_for)
            pipe.zadd(self._active_key, {record.id: record.expires_at.timestamp()})
        else:
            pipe.expire(record_key, self._seconds(self.retention))
            pipe.zrem(self._active_key, record.id)
            if owner_id == record.id:
                pipe.delete(slot_key)

    @staticmethod
    def _seconds(delta: timedelta) -> int:
        return max(1, math.ceil(delta.total_seconds()))

    # ── Write ────────────────────────────────────────────────────────────

    def try_reserve(self, slot_key, session_id, ttl, now=None):
        now = now or utcnow()
        slot_name = self._slot_key(slot_key)

        def _attempt(pipe: Pipeline) -> Reservation:
            owner_id = pipe.get(slot_name)
            if owner_id:
                pipe.watch(self._record_key(owner_id))
            current = self._load(pipe, owner_id)

            stale = None
            if current is not None and current.status is ReservationStatus.ACTIVE:
                if current.expires_at > now:
                    if current.session_id == session_id:
                        pipe.unwatch()
                        return current
                    raise ConflictError(slot_key, current.remaining_seconds(now))
                stale = replace(current, status=ReservationStatus.EXPIRED, closed_at=now)

            reservation = Reservation(
                id=new_reservation_id(),
                slot_key=slot_key,
                session_id=session_id,
                created_at=now,
                expires_at=now + ttl,
            )
            pipe.multi()
            if stale is not None:
                self._write(pipe, stale, owner_id=None, now=now)
            self._write(pipe, reservation, owner_id=owner_id, now=now)
            return reservation

        return self.redis.transaction(_attempt, slot_name, value_from_callable=True)

    def transition(self, reservation_id, session_id, from_status, to_status, now=None):
        check_transition(from_status, to_status)
        now = now or utcnow()

        def _change(record: Reservation) -> tuple[Reservation, Exception | None]:
            if record.status is not from_status:
                return record, InvalidTransitionError(reservation_id, record.status, from_status)
            return replace(record, status=to_status, closed_at=now), None

        return self._mutate(reservation_id, session_id, now, _change)

    def extend(self, reservation_id, session_id, ttl, now=None):
        now = now or utcnow()

        def _change(record: Reservation) -> tuple[Reservation, Exception | None]:
            if record.status is not ReservationStatus.ACTIVE:
                return record, InvalidTransitionError(
                    reservation_id, record.status, ReservationStatus.ACTIVE
                )
            return replace(record, expires_at=now + ttl), None

        return self._mutate(reservation_id, session_id, now, _change)

    def _mutate(self, reservation_id, session_id, now, change) -> Reservation:
        """
        Load → authorize → lazy-expire → change → commit, in one transaction.

        A lazy expiry is committed even when the change itself is rejected,
        so the error is raised only after EXEC.
        """
        record_key = self._record_key(reservation_id)

        def _attempt(pipe: Pipeline) -> tuple[Reservation, Exception | None]:
            record = self._load(pipe, reservation_id)
            if record is None:
                raise NotFoundError(reservation_id)
            if record.session_id != session_id:
                raise UnauthorizedError(reservation_id)

            slot_name = self._slot_key(record.slot_key)
            pipe.watch(slot_name)
            owner_id = pipe.get(slot_name)

            dirty = False
            if record.status is ReservationStatus.ACTIVE and record.expires_at <= now:
                record = replace(record, status=ReservationStatus.EXPIRED, closed_at=now)
                dirty = True

            updated, error = change(record)
            if error is None:
                record, dirty = updated, True

            pipe.multi()
            if dirty:
                self._write(pipe, record, owner_id=owner_id, now=now)
            return record, error

        record, error = self.redis.transaction(_attempt, record_key, value_from_callable=True)
        if error is not None:
            raise error
        return record

    def sweep_expired(self, now=None):
        now = now or utcnow()
        due = self.redis.zrangebyscore(self._active_key, "-inf", now.timestamp())

        evicted = 0
        for reservation_id in due:
            if self._expire_one(reservation_id, now):
                evicted += 1
        return evicted

    def _expire_one(self, reservation_id: str, now: datetime) -> bool:
        record_key = self._record_key(reservation_id)

        def _attempt(pipe: Pipeline) -> bool:
            record = self._load(pipe, reservation_id)
            if record is None:
                # Record already gone, drop the dangling index entry
                pipe.multi()
                pipe.zrem(self._active_key, reservation_id)
                return False
            if record.status is not ReservationStatus.ACTIVE or record.expires_at > now:
                pipe.unwatch()
                return False

            slot_name = self._slot_key(record.slot_key)
            pipe.watch(slot_name)
            owner_id = pipe.get(slot_name)
            pipe.multi()
            self._write(
                pipe,
                replace(record, status=ReservationStatus.EXPIRED, closed_at=now),
                owner_id=owner_id,
                now=now,
            )
            return True

        return self.redis.transaction(_attempt, record_key, value_from_callable=True)

    # ── Read ─────────────────────────────────────────────────────────────

    def get(self, slot_key):
        record = self._load(self.redis, self.redis.get(self._slot_key(slot_key)))
        if record is None or record.status is not ReservationStatus.ACTIVE:
            return None
        return record

    def get_by_id(self, reservation_id):
        return self._load(self.redis, reservation_id)

    def list_active(self, tenant_id, dt, now=None):
        now = now or utcnow()
        pattern = f"{self.KEY_PREFIX}:slot:{_glob_escape(tenant_id)}:{dt.isoformat()}:*"

        result = []
        for key in self.redis.scan_iter(pattern):
            record = self._load(self.redis, self.redis.get(key))
            if (
                record is not None
                and record.slot_key.tenant_id == tenant_id
                and record.slot_key.date == dt
                and record.is_live(now)
            ):
                result.append(record)
        return sorted(result, key=lambda r: (r.slot_key.time, r.slot_key.resource_id or ""))

    def ping(self):
        return bool(self.redis.ping())
