# vetclinic/app/routers/internal.py
"""
Internal API endpoints for trusted callers (ops tooling, super-admin).

These endpoints are NOT meant to be exposed to browsers.
"""

import logging

from fastapi import APIRouter, Depends

from ..dependencies import get_reservation_service
from ..schemas.reservations import SweepResponse
from ..services.reservations import ReservationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["internal"])


@router.post("/reservations/sweep", response_model=SweepResponse)
def sweep_reservations(
    service: ReservationService = Depends(get_reservation_service),
):
    """Manually evict expired slot holds (same work as one sweeper tick)."""
    evicted = service.sweep()
    logger.info(f"Manual reservation sweep: {evicted} evicted")
    return SweepResponse(evicted=evicted)
