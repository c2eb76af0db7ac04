from datetime import datetime, timedelta, timezone

import fakeredis
import pytest
from fastapi.testclient import TestClient

from vetclinic.app.dependencies import (
    get_booking_flow,
    get_reservation_service,
    get_reservation_store,
)
from vetclinic.app.main import app
from vetclinic.app.services.appointments import AppointmentError, AppointmentGateway
from vetclinic.app.services.booking_flow import BookingFlow
from vetclinic.app.services.reservations import (
    InMemoryReservationStore,
    RedisReservationStore,
    ReservationConfig,
    ReservationService,
    SlotKey,
)

START = datetime(2025, 1, 9, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class FakeAppointments(AppointmentGateway):
    def __init__(self, fail_create: bool = False, on_create=None):
        self.fail_create = fail_create
        self.on_create = on_create
        self.created: list[tuple[str, str, dict]] = []
        self.cancelled: list[str] = []
        self.booked: dict[str, SlotKey] = {}

    async def slot_booked(self, slot_key):
        return slot_key in self.booked.values()

    async def create_appointment(self, reservation, details):
        if self.on_create is not None:
            self.on_create()
        if self.fail_create:
            raise AppointmentError("appointment backend unavailable")
        appointment_id = f"apt-{len(self.created) + 1}"
        self.created.append((appointment_id, reservation.id, details))
        self.booked[appointment_id] = reservation.slot_key
        return appointment_id

    async def cancel_appointment(self, appointment_id):
        self.cancelled.append(appointment_id)
        self.booked.pop(appointment_id, None)


@pytest.fixture
def slot() -> SlotKey:
    return SlotKey.parse("tenant1", "2025-01-10", "09:00")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> ReservationConfig:
    return ReservationConfig(ttl_seconds=300, sweep_interval_seconds=30, retention_seconds=60)


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture(params=["memory", "redis"])
def store(request, config, fake_redis):
    if request.param == "memory":
        return InMemoryReservationStore(retention=config.retention)
    return RedisReservationStore(fake_redis, retention=config.retention)


@pytest.fixture
def memory_store(config):
    return InMemoryReservationStore(retention=config.retention)


@pytest.fixture
def service(store, config, clock) -> ReservationService:
    return ReservationService(store, config, clock=clock)


@pytest.fixture
def appointments() -> FakeAppointments:
    return FakeAppointments()


@pytest.fixture
def flow(service, appointments) -> BookingFlow:
    return BookingFlow(service, appointments)


@pytest.fixture
def client(store, service, flow):
    app.dependency_overrides[get_reservation_store] = lambda: store
    app.dependency_overrides[get_reservation_service] = lambda: service
    app.dependency_overrides[get_booking_flow] = lambda: flow
    yield TestClient(app)
    app.dependency_overrides.clear()
