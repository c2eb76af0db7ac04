# vetclinic/app/routers/reservations.py
"""
Slot reservation API endpoints.

POST   /reserve                      - hold a slot (201 / 409 conflict)
GET    /reservations                 - live holds of a tenant day
GET    /reservations/{id}            - status + remaining TTL
POST   /reservations/{id}/renew      - restart the TTL window
POST   /reservations/{id}/confirm    - promote hold to confirmed
DELETE /reservations/{id}            - release (idempotent)

Reservation errors are mapped to HTTP in main.py.
"""

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, status

from ..dependencies import get_reservation_service
from ..schemas.reservations import (
    ConfirmResponse,
    ConflictResponse,
    ReleaseResponse,
    RenewResponse,
    ReservationStatusResponse,
    ReservedSlot,
    ReservedSlotsResponse,
    ReserveRequest,
    ReserveResponse,
    SessionRequest,
)
from ..services.reservations import ReservationService

router = APIRouter(tags=["reservations"])


@router.post(
    "/reserve",
    response_model=ReserveResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ConflictResponse}},
)
def create_reservation(
    data: ReserveRequest,
    service: ReservationService = Depends(get_reservation_service),
):
    """Hold a time slot for the booking session (TTL window)."""
    reservation = service.reserve(
        data.tenant_id,
        data.date,
        data.time,
        data.session_id,
        resource_id=data.resource_id,
    )
    return ReserveResponse(
        reservation_id=reservation.id,
        expires_at=reservation.expires_at,
        expires_in=reservation.remaining_seconds(service.clock()),
    )


@router.get("/reservations", response_model=ReservedSlotsResponse)
def list_reservations(
    tenant_id: str = Query(..., alias="tenantId"),
    target_date: str = Query(..., alias="date"),
    service: ReservationService = Depends(get_reservation_service),
):
    """Live holds for a tenant and date."""
    reservations = service.list_active(tenant_id, target_date)
    return ReservedSlotsResponse(
        tenant_id=tenant_id,
        date=target_date,
        slots=[
            ReservedSlot(
                reservation_id=r.id,
                time=r.slot_key.time_str,
                resource_id=r.slot_key.resource_id,
                expires_at=r.expires_at,
            )
            for r in reservations
        ],
    )


@router.get("/reservations/{reservation_id}", response_model=ReservationStatusResponse)
def get_reservation(
    reservation_id: str,
    service: ReservationService = Depends(get_reservation_service),
):
    """Current status and remaining TTL (for the UI countdown)."""
    reservation, remaining = service.get_status(reservation_id)
    slot = reservation.slot_key
    return ReservationStatusResponse(
        reservation_id=reservation.id,
        tenant_id=slot.tenant_id,
        date=slot.date.isoformat(),
        time=slot.time_str,
        resource_id=slot.resource_id,
        status="expired" if service.is_expired(reservation) else reservation.status.value,
        expires_at=reservation.expires_at,
        remaining_seconds=remaining,
    )


@router.post("/reservations/{reservation_id}/renew", response_model=RenewResponse)
def renew_reservation(
    reservation_id: str,
    data: SessionRequest,
    service: ReservationService = Depends(get_reservation_service),
):
    reservation = service.renew(reservation_id, data.session_id)
    return RenewResponse(
        reservation_id=reservation.id,
        expires_at=reservation.expires_at,
        expires_in=reservation.remaining_seconds(service.clock()),
    )


@router.post("/reservations/{reservation_id}/confirm", response_model=ConfirmResponse)
def confirm_reservation(
    reservation_id: str,
    data: SessionRequest,
    service: ReservationService = Depends(get_reservation_service),
):
    reservation = service.confirm(reservation_id, data.session_id)
    return ConfirmResponse(reservation_id=reservation.id, status=reservation.status.value)


@router.delete("/reservations/{reservation_id}", response_model=ReleaseResponse)
def release_reservation(
    reservation_id: str,
    data: SessionRequest | None = Body(None),
    x_session_id: str | None = Header(None),
    service: ReservationService = Depends(get_reservation_service),
):
    """
    Release a slot reservation.

    Session comes from the JSON body or the X-Session-Id header
    (navigator.sendBeacon / keepalive requests on page unload).
    """
    session_id = data.session_id if data is not None else x_session_id
    if not session_id:
        raise HTTPException(status_code=400, detail="sessionId is required")

    reservation = service.release(reservation_id, session_id)
    return ReleaseResponse(
        reservation_id=reservation_id,
        status=reservation.status.value if reservation is not None else "unknown",
    )
