# vetclinic/app/services/reservations/__init__.py
"""
Slot reservation module.

Holds a (tenant, date, time[, resource]) slot exclusively for one booking
session during a bounded TTL window.

Store: in-memory (single instance) or Redis (shared across instances)
Service: reserve / renew / release / confirm
Sweeper: background eviction of expired holds
"""

from .config import ReservationConfig, get_reservation_config
from .errors import (
    ConflictError,
    ExpiredError,
    InvalidRequestError,
    InvalidTransitionError,
    NotFoundError,
    ReservationError,
    UnauthorizedError,
)
from .models import Reservation, ReservationStatus, SlotKey
from .redis_store import RedisReservationStore
from .service import ReservationService
from .store import InMemoryReservationStore, ReservationStore
from .sweeper import ExpirationSweeper

__all__ = [
    "ReservationConfig",
    "get_reservation_config",
    "ReservationError",
    "InvalidRequestError",
    "ConflictError",
    "NotFoundError",
    "UnauthorizedError",
    "ExpiredError",
    "InvalidTransitionError",
    "Reservation",
    "ReservationStatus",
    "SlotKey",
    "ReservationStore",
    "InMemoryReservationStore",
    "RedisReservationStore",
    "ReservationService",
    "ExpirationSweeper",
]
