import asyncio
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from vetclinic.app.services.appointments import AppointmentError, HttpAppointmentGateway
from vetclinic.app.services.reservations import Reservation, SlotKey

NOW = datetime(2025, 1, 9, 12, 0, tzinfo=timezone.utc)

RESERVATION = Reservation(
    id="res-1",
    slot_key=SlotKey.parse("tenant1", "2025-01-10", "09:00", "room-2"),
    session_id="session-a",
    created_at=NOW,
    expires_at=NOW + timedelta(seconds=300),
)


def gateway_for(handler) -> HttpAppointmentGateway:
    return HttpAppointmentGateway(
        "http://clinic.test/", transport=httpx.MockTransport(handler)
    )


def test_create_appointment_posts_slot_and_details():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": 42})

    appointment_id = asyncio.run(
        gateway_for(handler).create_appointment(RESERVATION, {"client_id": "c1", "pet_id": "p1"})
    )

    assert appointment_id == "42"
    assert seen["method"] == "POST"
    assert seen["url"] == "http://clinic.test/internal/appointments"
    assert seen["body"] == {
        "tenant_id": "tenant1",
        "date": "2025-01-10",
        "time": "09:00",
        "resource_id": "room-2",
        "reservation_id": "res-1",
        "client_id": "c1",
        "pet_id": "p1",
    }


def test_create_appointment_wraps_http_errors():
    def handler(request):
        return httpx.Response(500, json={"detail": "boom"})

    with pytest.raises(AppointmentError):
        asyncio.run(gateway_for(handler).create_appointment(RESERVATION, {}))


def test_create_appointment_requires_an_id():
    def handler(request):
        return httpx.Response(201, json={})

    with pytest.raises(AppointmentError):
        asyncio.run(gateway_for(handler).create_appointment(RESERVATION, {}))


def test_unconfigured_gateway_fails_cleanly():
    gateway = HttpAppointmentGateway(None)

    with pytest.raises(AppointmentError):
        asyncio.run(gateway.create_appointment(RESERVATION, {}))


def test_cancel_appointment_tolerates_missing_appointment():
    calls = []

    def handler(request):
        calls.append((request.method, request.url.path))
        return httpx.Response(404)

    asyncio.run(gateway_for(handler).cancel_appointment("42"))

    assert calls == [("DELETE", "/internal/appointments/42")]


def test_cancel_appointment_wraps_http_errors():
    def handler(request):
        return httpx.Response(503)

    with pytest.raises(AppointmentError):
        asyncio.run(gateway_for(handler).cancel_appointment("42"))


def test_slot_booked_queries_appointments_for_slot():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[{"id": 7}])

    booked = asyncio.run(gateway_for(handler).slot_booked(RESERVATION.slot_key))

    assert booked is True
    assert seen == {
        "method": "GET",
        "path": "/internal/appointments",
        "params": {
            "tenant_id": "tenant1",
            "date": "2025-01-10",
            "time": "09:00",
            "resource_id": "room-2",
        },
    }


def test_slot_without_appointments_is_free():
    def handler(request):
        assert "resource_id" not in request.url.params
        return httpx.Response(200, json=[])

    slot_key = SlotKey.parse("tenant1", "2025-01-10", "09:00")

    assert asyncio.run(gateway_for(handler).slot_booked(slot_key)) is False


def test_slot_booked_wraps_http_errors():
    def handler(request):
        return httpx.Response(502)

    with pytest.raises(AppointmentError):
        asyncio.run(gateway_for(handler).slot_booked(RESERVATION.slot_key))
