import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from .config import settings
from .dependencies import get_reservation_service, get_reservation_store
from .routers import booking_flow, internal, reservations
from .services.reservations import (
    ConflictError,
    ExpirationSweeper,
    ExpiredError,
    InvalidRequestError,
    InvalidTransitionError,
    NotFoundError,
    ReservationError,
    ReservationStore,
    UnauthorizedError,
    get_reservation_config,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.log_level)

    sweeper = ExpirationSweeper(
        get_reservation_service(),
        interval_seconds=get_reservation_config().sweep_interval_seconds,
    )
    sweeper.start()
    app.state.sweeper = sweeper
    try:
        yield
    finally:
        await sweeper.stop()


app = FastAPI(title="Slot Reservations API", lifespan=lifespan)

app.include_router(reservations.router)
app.include_router(booking_flow.router)
app.include_router(internal.router)


# ===== Reservation errors → HTTP =====

ERROR_STATUS = {
    InvalidRequestError: 400,
    UnauthorizedError: 403,
    NotFoundError: 404,
    InvalidTransitionError: 409,
    ExpiredError: 410,
}


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(
        status_code=409,
        content={
            "conflict": True,
            "retryAfterSeconds": exc.retry_after_seconds,
            "detail": "Slot already reserved",
        },
        headers={"Retry-After": str(exc.retry_after_seconds)},
    )


@app.exception_handler(ReservationError)
async def reservation_error_handler(request: Request, exc: ReservationError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "reason": exc.reason},
    )


@app.get("/health")
def health(store: ReservationStore = Depends(get_reservation_store)):
    return {"store": store.ping()}
