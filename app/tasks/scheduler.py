# app/tasks/scheduler.py
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.core.config import settings
from app.db.session import AsyncSessionLocal
from app.services.round_service import close_due_rounds

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler(timezone=settings.TZ)


async def close_rounds_job():
    """
    open -> closed for rounds whose close_time has passed.
    Results are entered by admins, so this is the only automatic transition.
    """
    async with AsyncSessionLocal() as session:
        try:
            await close_due_rounds(session)
        except Exception as e:
            logger.exception("[close_rounds_job] error: %s", e)


def start_scheduler():
    scheduler.add_job(
        close_rounds_job,
        "interval",
        seconds=settings.ROUND_CLOSE_POLL_SECONDS,
        id="close_due_rounds",
        replace_existing=True,
        coalesce=True,          # merge piled-up runs
        max_instances=1,
        misfire_grace_time=10,
    )

    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
