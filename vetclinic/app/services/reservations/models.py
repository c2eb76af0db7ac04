# vetclinic/app/services/reservations/models.py
"""
Value types for slot reservations.

SlotKey identifies a reservable unit: tenant + date + time, optionally
narrowed to a resource (room, groomer, service). Reservation is the hold
record owned by a ReservationStore; records are frozen, the store swaps
them out on every state change.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone, tzinfo
from enum import Enum
from uuid import uuid4

from .errors import InvalidRequestError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_reservation_id() -> str:
    return uuid4().hex


class ReservationStatus(str, Enum):
    ACTIVE = "active"
    CONFIRMED = "confirmed"
    RELEASED = "released"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not ReservationStatus.ACTIVE


def check_identifier(name: str, value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise InvalidRequestError(f"{name} is required")
    if ":" in value:
        raise InvalidRequestError(f"{name} must not contain ':'")
    return value


@dataclass(frozen=True)
class SlotKey:
    tenant_id: str
    date: date
    time: time
    resource_id: str | None = None

    @classmethod
    def parse(
        cls,
        tenant_id: str,
        date_value: date | str,
        time_value: time | str,
        resource_id: str | None = None,
    ) -> "SlotKey":
        """
        Build a SlotKey from raw request values.

        Accepts "YYYY-MM-DD" / "HH:MM" strings or date/time objects.
        Raises InvalidRequestError on malformed input.
        """
        tenant_id = check_identifier("tenant_id", tenant_id)
        if resource_id is not None:
            resource_id = check_identifier("resource_id", resource_id)

        if isinstance(date_value, str):
            try:
                date_value = date.fromisoformat(date_value)
            except ValueError:
                raise InvalidRequestError("Invalid date format, expected YYYY-MM-DD")
        elif isinstance(date_value, datetime) or not isinstance(date_value, date):
            raise InvalidRequestError("Invalid date, expected YYYY-MM-DD")

        if isinstance(time_value, str):
            try:
                time_value = time.fromisoformat(time_value)
            except ValueError:
                raise InvalidRequestError("Invalid time format, expected HH:MM")
        elif not isinstance(time_value, time):
            raise InvalidRequestError("Invalid time, expected HH:MM")

        if time_value.tzinfo is not None:
            raise InvalidRequestError("Slot time must not carry a timezone")
        if time_value.second or time_value.microsecond:
            raise InvalidRequestError("Slot time must be on a whole minute (HH:MM)")

        return cls(tenant_id, date_value, time_value, resource_id)

    @property
    def time_str(self) -> str:
        return self.time.strftime("%H:%M")

    def as_key(self) -> str:
        """Stable string form: {tenant}:{date}:{HH:MM}[:{resource}]."""
        key = f"{self.tenant_id}:{self.date.isoformat()}:{self.time_str}"
        if self.resource_id is not None:
            key = f"{key}:{self.resource_id}"
        return key

    def starts_at(self, tz: tzinfo) -> datetime:
        return datetime.combine(self.date, self.time, tzinfo=tz)


@dataclass(frozen=True)
class Reservation:
    id: str
    slot_key: SlotKey
    session_id: str
    created_at: datetime
    expires_at: datetime
    status: ReservationStatus = ReservationStatus.ACTIVE
    closed_at: datetime | None = None

    def is_live(self, now: datetime) -> bool:
        """Active and not past its deadline."""
        return self.status is ReservationStatus.ACTIVE and self.expires_at > now

    def remaining_seconds(self, now: datetime) -> int:
        """Whole seconds left on the hold, rounded up (0 once past deadline)."""
        if self.status is not ReservationStatus.ACTIVE:
            return 0
        return max(0, math.ceil((self.expires_at - now).total_seconds()))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.slot_key.tenant_id,
            "date": self.slot_key.date.isoformat(),
            "time": self.slot_key.time_str,
            "resource_id": self.slot_key.resource_id,
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "status": self.status.value,
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Reservation":
        closed_at = data.get("closed_at")
        return cls(
            id=data["id"],
            slot_key=SlotKey(
                tenant_id=data["tenant_id"],
                date=date.fromisoformat(data["date"]),
                time=time.fromisoformat(data["time"]),
                resource_id=data.get("resource_id"),
            ),
            session_id=data["session_id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            status=ReservationStatus(data["status"]),
            closed_at=datetime.fromisoformat(closed_at) if closed_at else None,
        )
