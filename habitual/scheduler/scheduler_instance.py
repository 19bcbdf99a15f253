from __future__ import annotations
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from pytz import utc
from loguru import logger

from ..config import settings

PURGE_JOB_ID = "purge_deleted_items"
CLOSE_PERIODS_JOB_ID = "close_elapsed_periods"


def sync_database_url(url: str) -> str:
    """APScheduler's job store uses sync SQLAlchemy; strip async drivers."""
    return url.replace("+asyncpg", "").replace("+aiosqlite", "")


jobstores = {
    'default': SQLAlchemyJobStore(url=sync_database_url(settings.DATABASE_URL))
}

executors = {
    'default': AsyncIOExecutor()
}

job_defaults = {
    'coalesce': True,  # Combine missed runs
    'max_instances': 1,  # One instance per job
    'misfire_grace_time': 300,  # 5 min grace for missed jobs
}

scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone=utc,
)

def register_maintenance_jobs(target: AsyncIOScheduler) -> None:
    """Daily purge at PURGE_HOUR_UTC:00 UTC and periodic period rollover."""
    target.add_job(
        func="habitual.scheduler.jobs:purge_deleted_items_job",
        trigger=CronTrigger(hour=settings.PURGE_HOUR_UTC, minute=0, timezone=utc),
        id=PURGE_JOB_ID,
        replace_existing=True,
    )
    logger.info("Scheduled purge_deleted_items_job at {:02d}:00 UTC", settings.PURGE_HOUR_UTC)

    target.add_job(
        func="habitual.scheduler.jobs:close_elapsed_periods_job",
        trigger=IntervalTrigger(minutes=settings.PERIOD_CLOSE_INTERVAL_MINUTES, timezone=utc),
        id=CLOSE_PERIODS_JOB_ID,
        replace_existing=True,
    )
    logger.info("Scheduled close_elapsed_periods_job every {} minutes", settings.PERIOD_CLOSE_INTERVAL_MINUTES)

def start_scheduler():
    if not scheduler.running:
        scheduler.start()
        try:
            register_maintenance_jobs(scheduler)
        except Exception:
            logger.exception("Failed to schedule maintenance jobs")
        logger.info("APScheduler started")

def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler shut down")
