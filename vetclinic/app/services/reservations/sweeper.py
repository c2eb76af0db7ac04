# vetclinic/app/services/reservations/sweeper.py
"""
Expiration sweeper.

Periodically evicts slot holds past their deadline so that abandoned
booking attempts free their slot without an explicit cancel, and so that
status polling (UI countdown) sees the expiry promptly.

Eviction is advisory: try_reserve already treats stale holds as vacant,
so a missed tick only delays cleanup.

Runs as an asyncio task in the app lifespan.
Uses the synchronous store (via asyncio.to_thread).
"""

import asyncio
import logging

from .service import ReservationService

logger = logging.getLogger(__name__)


class ExpirationSweeper:
    def __init__(self, service: ReservationService, interval_seconds: float):
        self.service = service
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    def run_once(self) -> int:
        """Run a single sweep (synchronous)."""
        evicted = self.service.sweep()
        if evicted:
            logger.info(f"Reservation sweep: expired {evicted} slot hold(s)")
        return evicted

    async def run(self) -> None:
        """Sweep every `interval_seconds` until cancelled."""
        logger.info(f"expiration_sweeper started (every {self.interval_seconds}s)")

        try:
            while True:
                try:
                    await asyncio.to_thread(self.run_once)
                except asyncio.CancelledError:
                    logger.info("expiration_sweeper cancelled")
                    raise
                except Exception:
                    logger.exception("expiration_sweeper error")

                await asyncio.sleep(self.interval_seconds)
        except asyncio.CancelledError:
            pass

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="expiration_sweeper")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
