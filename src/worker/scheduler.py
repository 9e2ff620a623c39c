"""APScheduler job definitions."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.worker.checker import RestockMonitor

logger = logging.getLogger(__name__)


async def scheduled_check(monitor: RestockMonitor) -> None:
    """Scheduled trigger: a failed run is logged, never raised into the scheduler."""
    try:
        await monitor.run_check()
    except Exception as e:
        logger.error(f"Scheduled check failed: {e}", exc_info=True)


def setup_scheduler(monitor: RestockMonitor) -> AsyncIOScheduler:
    """
    Setup and configure APScheduler.

    Returns:
        Configured scheduler instance (not started)
    """
    scheduler = AsyncIOScheduler()
    interval = monitor.settings.check_interval_minutes

    scheduler.add_job(
        scheduled_check,
        IntervalTrigger(minutes=interval),
        args=[monitor],
        id="restock_check",
        name="Check targets for restocks",
        max_instances=1,  # Prevent overlapping runs
        coalesce=True,
        misfire_grace_time=60,
        replace_existing=True,
    )

    logger.info(f"Scheduled restock check every {interval} minute(s)")
    return scheduler
