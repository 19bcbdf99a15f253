"""
Retention policy for soft-deleted tasks, projects and habits.

Anything whose ``deleted_at`` is at least ``PURGE_DAYS`` old may be removed
for good. Completed items are never trashed by completion alone and are
never selected here.
"""
from __future__ import annotations
from typing import List, Optional
from datetime import datetime, timedelta
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, delete
from loguru import logger

from ..models.habit import (
    Habit, HabitDay, HabitPeriod, HabitSlip, HabitUsageEvent, ScheduleOccurrenceRecord,
)
from ..models.task import Project, Task, TimeEntry
from ..utils.local_date import to_utc, utc_now

PURGE_DAYS = 60


def purge_cutoff(now: Optional[datetime] = None, retention_days: int = PURGE_DAYS) -> datetime:
    """Items deleted at or before this instant are purgeable."""
    return to_utc(now or utc_now()) - timedelta(days=retention_days)


def is_purgeable(deleted_at: Optional[datetime], now: Optional[datetime] = None, retention_days: int = PURGE_DAYS) -> bool:
    if deleted_at is None:
        raise ValueError("Only soft-deleted items can be evaluated for purge")
    return to_utc(now or utc_now()) - to_utc(deleted_at) >= timedelta(days=retention_days)


def days_until_purge(deleted_at: datetime, now: Optional[datetime] = None, retention_days: int = PURGE_DAYS) -> int:
    """Whole days left before a trashed item is purged (never negative)."""
    purge_at = to_utc(deleted_at) + timedelta(days=retention_days)
    return max(0, (purge_at - to_utc(now or utc_now())).days)


def format_purge_notice(days: int) -> str:
    if days <= 0:
        return "Purges today"
    if days == 1:
        return "Purges tomorrow"
    return f"Purges in {days} days"


class PurgeResult(BaseModel):
    cutoff: datetime
    tasks: int = 0
    projects: int = 0
    habits: int = 0
    errors: List[str] = []

    @property
    def success(self) -> bool:
        return not self.errors


class PurgeService:
    """
    Hard-deletes soft-deleted items past the retention window, children first.
    Each family is committed on its own so one failure does not block the rest.
    """

    @staticmethod
    async def _expired_ids(session: AsyncSession, model, cutoff: datetime) -> List[int]:
        result = await session.execute(
            select(model.id).where(model.deleted_at != None, model.deleted_at <= cutoff)  # noqa: E711
        )
        return [r for (r,) in result.all()]

    @staticmethod
    async def _purge_tasks(session: AsyncSession, cutoff: datetime) -> int:
        task_ids = await PurgeService._expired_ids(session, Task, cutoff)
        if not task_ids:
            return 0
        await session.execute(delete(TimeEntry).where(TimeEntry.task_id.in_(task_ids)))
        await session.execute(delete(Task).where(Task.id.in_(task_ids)))
        return len(task_ids)

    @staticmethod
    async def _purge_projects(session: AsyncSession, cutoff: datetime) -> int:
        project_ids = await PurgeService._expired_ids(session, Project, cutoff)
        if not project_ids:
            return 0
        # Tasks still attached to a purged project go with it
        result = await session.execute(select(Task.id).where(Task.project_id.in_(project_ids)))
        orphan_ids = [r for (r,) in result.all()]
        if orphan_ids:
            await session.execute(delete(TimeEntry).where(TimeEntry.task_id.in_(orphan_ids)))
            await session.execute(delete(Task).where(Task.id.in_(orphan_ids)))
        await session.execute(delete(Project).where(Project.id.in_(project_ids)))
        return len(project_ids)

    @staticmethod
    async def _purge_habits(session: AsyncSession, cutoff: datetime) -> int:
        habit_ids = await PurgeService._expired_ids(session, Habit, cutoff)
        if not habit_ids:
            return 0
        await session.execute(delete(HabitUsageEvent).where(HabitUsageEvent.habit_id.in_(habit_ids)))
        await session.execute(delete(HabitPeriod).where(HabitPeriod.habit_id.in_(habit_ids)))
        await session.execute(
            delete(ScheduleOccurrenceRecord).where(ScheduleOccurrenceRecord.habit_id.in_(habit_ids))
        )
        await session.execute(delete(HabitSlip).where(HabitSlip.habit_id.in_(habit_ids)))
        await session.execute(delete(HabitDay).where(HabitDay.habit_id.in_(habit_ids)))
        await session.execute(delete(Habit).where(Habit.id.in_(habit_ids)))
        return len(habit_ids)

    @staticmethod
    async def purge_deleted_items(
        session: AsyncSession, now: Optional[datetime] = None, retention_days: int = PURGE_DAYS
    ) -> PurgeResult:
        cutoff = purge_cutoff(now, retention_days)
        result = PurgeResult(cutoff=cutoff)
        logger.info("Purging items deleted before {}", cutoff.isoformat())

        families = (
            ("tasks", PurgeService._purge_tasks),
            ("projects", PurgeService._purge_projects),
            ("habits", PurgeService._purge_habits),
        )
        for name, purge in families:
            try:
                count = await purge(session, cutoff)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.exception("Error purging {}: {}", name, e)
                result.errors.append(f"{name.capitalize()}: {e}")
                continue
            setattr(result, name, count)
            if count:
                logger.info("Purged {} {}", count, name)

        logger.info(
            "Purge complete: {} tasks, {} projects, {} habits, {} errors",
            result.tasks, result.projects, result.habits, len(result.errors),
        )
        return result

    @staticmethod
    async def list_trash(session: AsyncSession, owner_id: int, now: Optional[datetime] = None) -> List[dict]:
        """Soft-deleted items of an owner with their purge countdown, newest first."""
        items = []
        for entity_type, model in (("task", Task), ("project", Project), ("habit", Habit)):
            result = await session.execute(
                select(model).where(model.owner_id == owner_id, model.deleted_at != None)  # noqa: E711
            )
            for row in result.scalars().all():
                days = days_until_purge(row.deleted_at, now)
                items.append({
                    "entity_type": entity_type,
                    "id": row.id,
                    "title": row.title,
                    "deleted_at": to_utc(row.deleted_at),
                    "days_until_purge": days,
                    "purge_notice": format_purge_notice(days),
                })
        items.sort(key=lambda i: i["deleted_at"], reverse=True)
        return items
