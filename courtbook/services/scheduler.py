"""Background scheduler for booking lifecycle housekeeping."""
import logging
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker

from courtbook.core.config import settings
from courtbook.core.database import AsyncSessionLocal
from courtbook.services.booking_service import booking_service

logger = logging.getLogger(__name__)


class LifecycleScheduler:
    """Periodically completes bookings whose time has passed."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        """Initialize the scheduler."""
        self.session_factory = session_factory or AsyncSessionLocal
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False

    async def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler is already running")
            return

        logger.info("Starting lifecycle scheduler")

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self._sweep,
            IntervalTrigger(minutes=settings.LIFECYCLE_SWEEP_MINUTES),
            id="lifecycle_sweep",
            name="Complete finished bookings",
            replace_existing=True,
        )

        self.scheduler.start()
        self.running = True
        logger.info("Lifecycle scheduler started")

    async def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        logger.info("Stopping lifecycle scheduler")
        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("Lifecycle scheduler stopped")

    async def _sweep(self):
        """
        Mark finished bookings as completed.

        Failures are logged and left for the next run.
        """
        logger.debug("Running lifecycle sweep")

        try:
            await booking_service.complete_finished_bookings(self.session_factory)
        except Exception as e:
            logger.error(f"Error in lifecycle sweep: {e}", exc_info=True)


# Singleton instance
lifecycle_scheduler = LifecycleScheduler()
