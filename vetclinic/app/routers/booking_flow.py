# vetclinic/app/routers/booking_flow.py
"""
Booking dialog endpoints.

POST /booking-flow/start            - dialog opened: check the slot, hold it
POST /booking-flow/{id}/complete    - form submitted: appointment + confirm
POST /booking-flow/{id}/cancel      - dialog closed / navigated away

A slot that is taken or has expired comes back as 409 / 410 with a
"no longer available" message; the UI returns to slot selection.
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..dependencies import get_booking_flow
from ..schemas.booking_flow import (
    BookingErrorResponse,
    CancelBookingRequest,
    CancelBookingResponse,
    CompleteBookingRequest,
    CompleteBookingResponse,
    StartBookingRequest,
    StartBookingResponse,
)
from ..services.booking_flow import BookingFlow, BookingOutcome

router = APIRouter(prefix="/booking-flow", tags=["booking-flow"])

OUTCOME_STATUS = {
    "conflict": status.HTTP_409_CONFLICT,
    "expired": status.HTTP_410_GONE,
    "invalid_request": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
    "forbidden": status.HTTP_403_FORBIDDEN,
    "invalid_transition": status.HTTP_409_CONFLICT,
    "appointment_failed": status.HTTP_502_BAD_GATEWAY,
}

ERROR_RESPONSES = {code: {"model": BookingErrorResponse} for code in set(OUTCOME_STATUS.values())}


def _error_response(outcome: BookingOutcome) -> JSONResponse:
    body = BookingErrorResponse(
        reason=outcome.reason or "error",
        detail=outcome.message or "Booking failed",
        retry_after_seconds=outcome.retry_after_seconds,
    )
    headers = {}
    if outcome.retry_after_seconds is not None:
        headers["Retry-After"] = str(outcome.retry_after_seconds)
    return JSONResponse(
        status_code=OUTCOME_STATUS.get(outcome.reason, status.HTTP_400_BAD_REQUEST),
        content=body.model_dump(by_alias=True),
        headers=headers,
    )


@router.post(
    "/start",
    response_model=StartBookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def start_booking(
    data: StartBookingRequest,
    flow: BookingFlow = Depends(get_booking_flow),
):
    """Hold the slot before the client/pet/service form is shown."""
    outcome = await flow.start(
        data.tenant_id,
        data.date,
        data.time,
        resource_id=data.resource_id,
        session_id=data.session_id,
    )
    if not outcome.ok:
        return _error_response(outcome)

    reservation = outcome.reservation
    return StartBookingResponse(
        session_id=outcome.session_id,
        reservation_id=reservation.id,
        expires_at=reservation.expires_at,
        expires_in=reservation.remaining_seconds(flow.service.clock()),
    )


@router.post(
    "/{reservation_id}/complete",
    response_model=CompleteBookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def complete_booking(
    reservation_id: str,
    data: CompleteBookingRequest,
    flow: BookingFlow = Depends(get_booking_flow),
):
    """Create the appointment for the held slot and confirm the hold."""
    details = data.model_dump(exclude={"session_id"}, exclude_none=True)
    outcome = await flow.complete(reservation_id, data.session_id, details)
    if not outcome.ok:
        return _error_response(outcome)

    return CompleteBookingResponse(
        reservation_id=reservation_id,
        appointment_id=outcome.appointment_id,
        status=outcome.reservation.status.value,
    )


@router.post(
    "/{reservation_id}/cancel",
    response_model=CancelBookingResponse,
    responses=ERROR_RESPONSES,
)
def cancel_booking(
    reservation_id: str,
    data: CancelBookingRequest,
    flow: BookingFlow = Depends(get_booking_flow),
):
    outcome = flow.cancel(reservation_id, data.session_id)
    if not outcome.ok:
        return _error_response(outcome)

    return CancelBookingResponse(
        reservation_id=reservation_id,
        status=outcome.reservation.status.value if outcome.reservation else "unknown",
    )
