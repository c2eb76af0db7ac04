# vetclinic/app/dependencies.py
"""
Process-wide reservation engine wiring (FastAPI dependencies).

RESERVATION_STORE=memory → single-instance in-process table
RESERVATION_STORE=redis  → shared table in Redis (multi-instance)
"""

from functools import lru_cache

from .config import settings
from .services.appointments import HttpAppointmentGateway
from .services.booking_flow import BookingFlow
from .services.events import EventEmitter
from .services.reservations import (
    InMemoryReservationStore,
    RedisReservationStore,
    ReservationService,
    ReservationStore,
    get_reservation_config,
)


@lru_cache
def get_reservation_store() -> ReservationStore:
    config = get_reservation_config()
    if settings.uses_redis:
        from .redis_client import redis_client

        return RedisReservationStore(redis_client, retention=config.retention)
    return InMemoryReservationStore(retention=config.retention)


@lru_cache
def get_reservation_service() -> ReservationService:
    events = None
    if settings.uses_redis:
        from .redis_client import redis_client

        events = EventEmitter(redis_client)
    return ReservationService(
        get_reservation_store(),
        get_reservation_config(),
        events=events,
    )


@lru_cache
def get_booking_flow() -> BookingFlow:
    return BookingFlow(
        get_reservation_service(),
        HttpAppointmentGateway(
            settings.appointments_api_url,
            timeout=settings.appointments_api_timeout,
        ),
    )
