from __future__ import annotations
from typing import Optional
from datetime import datetime
from loguru import logger

from ..db import AsyncSessionLocal
from ..config import settings
from ..services.habit_service import HabitService
from ..services.quota_habit_service import QuotaHabitService
from ..services.build_habit_service import BuildHabitService
from ..services.purge_service import PurgeService, PurgeResult

async def purge_deleted_items_job(now: Optional[datetime] = None) -> Optional[PurgeResult]:
    """Hard-delete trashed tasks, projects and habits past the retention window."""
    logger.info("Running purge_deleted_items_job")
    session = AsyncSessionLocal()
    try:
        result = await PurgeService.purge_deleted_items(
            session, now=now, retention_days=settings.PURGE_RETENTION_DAYS
        )
        if not result.success:
            logger.warning("Purge finished with errors: {}", result.errors)
        return result
    except Exception as e:
        logger.exception("Error during purge_deleted_items_job: {}", e)
        await session.rollback()
        return None
    finally:
        await session.close()

async def close_elapsed_periods_job(now: Optional[datetime] = None) -> int:
    """Write rows for quota/build periods that ended without any activity."""
    logger.info("Running close_elapsed_periods_job")
    session = AsyncSessionLocal()
    closed = 0
    try:
        services = (("quota", QuotaHabitService), ("build", BuildHabitService))
        for kind, service in services:
            for habit in await HabitService.list_habits(session, kind=kind, active_only=True):
                if not habit.period:
                    logger.warning("Habit {} has no period; skipping rollover", habit.id)
                    continue
                closed += len(await service.close_elapsed_period(session, habit, now=now))
        await session.commit()
        logger.info("Closed {} elapsed periods", closed)
    except Exception as e:
        logger.exception("Error in close_elapsed_periods_job: {}", e)
        await session.rollback()
        closed = 0
    finally:
        await session.close()
    return closed
