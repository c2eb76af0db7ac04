from datetime import date, datetime, time, timedelta, timezone

import pytest

from vetclinic.app.services.reservations import (
    InvalidRequestError,
    Reservation,
    ReservationStatus,
    SlotKey,
)


def test_slot_key_parses_strings():
    key = SlotKey.parse("tenant1", "2025-01-10", "09:00", "room-2")

    assert key.tenant_id == "tenant1"
    assert key.date == date(2025, 1, 10)
    assert key.time == time(9, 0)
    assert key.resource_id == "room-2"


def test_slot_key_equality_is_structural():
    a = SlotKey.parse("tenant1", "2025-01-10", "09:00")
    b = SlotKey.parse("tenant1", date(2025, 1, 10), time(9, 0))

    assert a == b
    assert hash(a) == hash(b)
    assert a != SlotKey.parse("tenant1", "2025-01-10", "09:00", "room-2")


def test_slot_key_string_form():
    assert SlotKey.parse("t1", "2025-01-10", "09:00").as_key() == "t1:2025-01-10:09:00"
    assert SlotKey.parse("t1", "2025-01-10", "09:00", "groomer").as_key() == "t1:2025-01-10:09:00:groomer"


@pytest.mark.parametrize(
    "tenant_id, date_value, time_value, resource_id",
    [
        ("", "2025-01-10", "09:00", None),
        ("t:1", "2025-01-10", "09:00", None),
        ("t1", "10/01/2025", "09:00", None),
        ("t1", "2025-01-10", "9am", None),
        ("t1", "2025-01-10", "09:00:30", None),
        ("t1", "2025-01-10", "09:00", "room:1"),
        ("t1", datetime(2025, 1, 10, 9), "09:00", None),
    ],
)
def test_slot_key_rejects_malformed_input(tenant_id, date_value, time_value, resource_id):
    with pytest.raises(InvalidRequestError):
        SlotKey.parse(tenant_id, date_value, time_value, resource_id)


def test_reservation_remaining_seconds_rounds_up_and_stops_at_zero():
    now = datetime(2025, 1, 9, 12, 0, tzinfo=timezone.utc)
    reservation = Reservation(
        id="r1",
        slot_key=SlotKey.parse("t1", "2025-01-10", "09:00"),
        session_id="s1",
        created_at=now,
        expires_at=now + timedelta(seconds=300),
    )

    assert reservation.remaining_seconds(now + timedelta(seconds=10.5)) == 290
    assert reservation.remaining_seconds(now + timedelta(seconds=301)) == 0
    assert reservation.is_live(now)
    assert not reservation.is_live(now + timedelta(seconds=300))


def test_reservation_dict_roundtrip_keeps_terminal_fields():
    now = datetime(2025, 1, 9, 12, 0, tzinfo=timezone.utc)
    reservation = Reservation(
        id="r1",
        slot_key=SlotKey.parse("t1", "2025-01-10", "09:00", "vet-3"),
        session_id="s1",
        created_at=now,
        expires_at=now + timedelta(seconds=300),
        status=ReservationStatus.RELEASED,
        closed_at=now + timedelta(seconds=5),
    )

    assert Reservation.from_dict(reservation.to_dict()) == reservation
