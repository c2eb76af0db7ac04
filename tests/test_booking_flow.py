import asyncio

from vetclinic.app.services.appointments import AppointmentError
from vetclinic.app.services.booking_flow import (
    SLOT_BOOKED_MESSAGE,
    SLOT_UNAVAILABLE_MESSAGE,
    BookingFlow,
)
from vetclinic.app.services.reservations import ReservationStatus

from .conftest import FakeAppointments

DETAILS = {"client_id": "c1", "pet_id": "p1", "service_id": "s1"}


def test_start_mints_session_and_holds_slot(flow, store, slot):
    outcome = asyncio.run(flow.start("tenant1", "2025-01-10", "09:00"))

    assert outcome.ok
    assert outcome.session_id
    assert outcome.reservation.session_id == outcome.session_id
    assert store.get(slot).id == outcome.reservation.id


def test_start_on_taken_slot_reports_unavailable(flow):
    asyncio.run(flow.start("tenant1", "2025-01-10", "09:00", session_id="session-a"))

    outcome = asyncio.run(flow.start("tenant1", "2025-01-10", "09:00", session_id="session-b"))

    assert not outcome.ok
    assert outcome.reason == "conflict"
    assert outcome.slot_unavailable
    assert outcome.message == SLOT_UNAVAILABLE_MESSAGE
    assert outcome.retry_after_seconds == 300


def test_start_with_bad_input_is_an_outcome(flow):
    outcome = asyncio.run(flow.start("tenant1", "not-a-date", "09:00"))

    assert not outcome.ok
    assert outcome.reason == "invalid_request"
    assert not outcome.slot_unavailable


def test_start_on_booked_slot_reports_already_booked(flow, store, slot):
    started = asyncio.run(flow.start("tenant1", "2025-01-10", "09:00"))
    asyncio.run(flow.complete(started.reservation.id, started.session_id, DETAILS))

    outcome = asyncio.run(flow.start("tenant1", "2025-01-10", "09:00"))

    assert not outcome.ok
    assert outcome.reason == "conflict"
    assert outcome.slot_unavailable
    assert outcome.message == SLOT_BOOKED_MESSAGE
    assert store.get(slot) is None


def test_start_after_cancelled_appointment_holds_slot(service, clock):
    appointments = FakeAppointments(on_create=lambda: clock.advance(301))
    flow = BookingFlow(service, appointments)
    started = asyncio.run(flow.start("tenant1", "2025-01-10", "09:00"))
    asyncio.run(flow.complete(started.reservation.id, started.session_id, DETAILS))

    assert asyncio.run(flow.start("tenant1", "2025-01-10", "09:00")).ok


class UnreachableAppointments(FakeAppointments):
    async def slot_booked(self, slot_key):
        raise AppointmentError("appointment backend unavailable")


def test_start_when_booking_lookup_fails_holds_nothing(service, store, slot):
    flow = BookingFlow(service, UnreachableAppointments())

    outcome = asyncio.run(flow.start("tenant1", "2025-01-10", "09:00"))

    assert not outcome.ok
    assert outcome.reason == "appointment_failed"
    assert store.get(slot) is None


def test_complete_creates_appointment_and_confirms(flow, appointments, store, slot):
    started = asyncio.run(flow.start("tenant1", "2025-01-10", "09:00"))

    outcome = asyncio.run(flow.complete(started.reservation.id, started.session_id, DETAILS))

    assert outcome.ok
    assert outcome.appointment_id == "apt-1"
    assert outcome.reservation.status is ReservationStatus.CONFIRMED
    assert appointments.created == [("apt-1", started.reservation.id, DETAILS)]
    assert store.get(slot) is None


def test_complete_after_expiry_creates_nothing(flow, appointments, clock):
    started = asyncio.run(flow.start("tenant1", "2025-01-10", "09:00"))
    clock.advance(301)

    outcome = asyncio.run(flow.complete(started.reservation.id, started.session_id, DETAILS))

    assert not outcome.ok
    assert outcome.reason == "expired"
    assert outcome.message == SLOT_UNAVAILABLE_MESSAGE
    assert appointments.created == []


def test_appointment_failure_releases_hold(service, store, slot):
    flow = BookingFlow(service, FakeAppointments(fail_create=True))
    started = asyncio.run(flow.start("tenant1", "2025-01-10", "09:00"))

    outcome = asyncio.run(flow.complete(started.reservation.id, started.session_id, DETAILS))

    assert not outcome.ok
    assert outcome.reason == "appointment_failed"
    assert store.get(slot) is None
    assert store.get_by_id(started.reservation.id).status is ReservationStatus.RELEASED


def test_confirm_failure_cancels_appointment(service, clock):
    appointments = FakeAppointments(on_create=lambda: clock.advance(301))
    flow = BookingFlow(service, appointments)
    started = asyncio.run(flow.start("tenant1", "2025-01-10", "09:00"))

    outcome = asyncio.run(flow.complete(started.reservation.id, started.session_id, DETAILS))

    assert not outcome.ok
    assert outcome.reason == "expired"
    assert appointments.cancelled == ["apt-1"]


def test_complete_by_foreign_session_is_forbidden(flow, appointments):
    started = asyncio.run(flow.start("tenant1", "2025-01-10", "09:00"))

    outcome = asyncio.run(flow.complete(started.reservation.id, "intruder", DETAILS))

    assert outcome.reason == "forbidden"
    assert appointments.created == []


def test_cancel_releases_hold(flow, store, slot):
    started = asyncio.run(flow.start("tenant1", "2025-01-10", "09:00"))

    outcome = flow.cancel(started.reservation.id, started.session_id)

    assert outcome.ok
    assert outcome.reservation.status is ReservationStatus.RELEASED
    assert store.get(slot) is None
    assert flow.cancel(started.reservation.id, started.session_id).ok


def test_cancel_by_foreign_session_is_forbidden(flow, store, slot):
    started = asyncio.run(flow.start("tenant1", "2025-01-10", "09:00"))

    outcome = flow.cancel(started.reservation.id, "intruder")

    assert not outcome.ok
    assert outcome.reason == "forbidden"
    assert store.get(slot).id == started.reservation.id
