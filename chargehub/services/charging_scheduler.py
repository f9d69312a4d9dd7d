# chargehub/services/charging_scheduler.py
import asyncio
import logging

from chargehub.config.charging_config import charging_settings
from chargehub.services.reservation_service import ReservationService
from chargehub.services.session_management_service import SessionManagementService

logger = logging.getLogger("chargehub.scheduler")


def _interval_label(seconds):
    if seconds % 60 == 0:
        return f"Active ({seconds // 60}min)"
    return f"Active ({seconds}s)"


class ChargingScheduler:
    """
    Background jobs that drive time-based charging state.

    - Reservation expiry: expires confirmed reservations past their hold
    - AlmostDone detection: flags points whose session is about to finish

    Constructed once at application startup; ``start`` and ``stop`` are
    called from the application lifespan. A failing tick is logged and the
    next tick runs as usual.
    """

    def __init__(self, reservation_service=ReservationService, session_service=SessionManagementService, settings=None):
        self.reservation_service = reservation_service
        self.session_service = session_service
        self.settings = settings or charging_settings
        self.tasks = {
            "reservation_expiry": None,
            "almost_done_detection": None,
        }
        self.is_running = False

    async def start(self):
        """Start both periodic jobs and run each once straight away."""
        if self.is_running:
            logger.warning("⚠️ Scheduler already running")
            return

        logger.info("🚀 Starting charging scheduler...")

        self.tasks["reservation_expiry"] = asyncio.create_task(
            self._run_periodically(
                "reservation_expiry",
                self.settings.reservation_expiry_interval_seconds,
                self.expire_reservations,
            )
        )
        self.tasks["almost_done_detection"] = asyncio.create_task(
            self._run_periodically(
                "almost_done_detection",
                self.settings.almost_done_interval_seconds,
                self.detect_almost_done,
            )
        )
        self.is_running = True

        logger.info("✅ Charging scheduler started")
        logger.info(f"   - Reservation expiry: every {self.settings.reservation_expiry_interval_seconds}s")
        logger.info(f"   - AlmostDone detection: every {self.settings.almost_done_interval_seconds}s")

        await self.run_immediately()

    async def stop(self):
        """Cancel both periodic jobs. A tick already running finishes first."""
        if not self.is_running:
            logger.warning("⚠️ Scheduler not running")
            return

        logger.info("🛑 Stopping charging scheduler...")

        for name, task in self.tasks.items():
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                logger.debug(f"Scheduler job {name} cancelled")
            self.tasks[name] = None

        self.is_running = False
        logger.info("✅ Charging scheduler stopped")

    async def run_immediately(self):
        """Run every job once, outside the timers."""
        logger.info("🔄 Running scheduler tasks immediately...")
        expired = await self._run_job("reservation_expiry", self.expire_reservations)
        updated = await self._run_job("almost_done_detection", self.detect_almost_done)
        logger.info(f"   ✓ Expired {expired or 0} reservations")
        logger.info(f"   ✓ Detected {updated or 0} almost done sessions")

    async def expire_reservations(self):
        result = await self.reservation_service.expire_old_reservations()
        if not result.success:
            logger.error(f"❌ Reservation expiry failed: {result.error}")
        elif result.expired > 0:
            logger.info(f"⏱️ Expired {result.expired} old reservations")
        return result.expired

    async def detect_almost_done(self):
        result = await self.session_service.detect_almost_done_sessions()
        if not result.success:
            logger.error(f"❌ AlmostDone detection failed: {result.error}")
        elif result.updated > 0:
            logger.info(f"🟡 Updated {result.updated} points to AlmostDone status")
        return result.updated

    def get_status(self):
        def label(name, seconds):
            task = self.tasks[name]
            return _interval_label(seconds) if task is not None and not task.done() else "Inactive"

        return {
            "is_running": self.is_running,
            "intervals": {
                "reservation_expiry": label(
                    "reservation_expiry", self.settings.reservation_expiry_interval_seconds
                ),
                "almost_done_detection": label(
                    "almost_done_detection", self.settings.almost_done_interval_seconds
                ),
            },
        }

    async def _run_periodically(self, name, interval_seconds, job):
        while True:
            await asyncio.sleep(interval_seconds)
            await self._run_job(name, job)

    async def _run_job(self, name, job):
        try:
            return await job()
        except Exception as e:
            logger.error(f"❌ Error in {name} scheduler: {str(e)}", exc_info=True)
            return None
