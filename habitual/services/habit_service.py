from __future__ import annotations
from typing import List, Optional
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, and_
from loguru import logger

from ..config import settings
from ..models.habit import Habit
from ..utils.local_date import get_zone, to_utc, utc_now

HABIT_KINDS = ("build", "quota", "schedule", "avoid")


class HabitService:
    """
    Lookup and lifecycle (archive / soft delete) shared by every habit kind.
    """

    @staticmethod
    def habit_timezone(habit: Habit) -> str:
        """Timezone the habit's periods and slots are computed in."""
        tz_name = habit.timezone or settings.DEFAULT_TIMEZONE
        get_zone(tz_name)
        return tz_name

    @staticmethod
    async def get_habit(session: AsyncSession, habit_id: int, kind: Optional[str] = None) -> Habit:
        """Load a live (not soft-deleted) habit, optionally of a given kind."""
        habit = await session.get(Habit, habit_id)
        if not habit or habit.deleted_at is not None:
            raise ValueError(f"Habit {habit_id} not found")
        if kind and habit.kind != kind:
            raise ValueError(f"Habit {habit_id} is a {habit.kind} habit, not {kind}")
        return habit

    @staticmethod
    async def list_habits(
        session: AsyncSession,
        owner_id: Optional[int] = None,
        kind: Optional[str] = None,
        active_only: bool = True,
    ) -> List[Habit]:
        """List live habits, oldest first."""
        filters = [Habit.deleted_at == None]  # noqa: E711
        if owner_id is not None:
            filters.append(Habit.owner_id == owner_id)
        if kind:
            filters.append(Habit.kind == kind)
        if active_only:
            filters.append(Habit.active == True)  # noqa: E712

        result = await session.execute(
            select(Habit).where(and_(*filters)).order_by(Habit.sort_order, Habit.created_at, Habit.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def archive_habit(session: AsyncSession, habit_id: int, now: Optional[datetime] = None) -> Habit:
        """Deactivate a habit but keep its history."""
        habit = await HabitService.get_habit(session, habit_id)
        habit.active = False
        habit.archived_at = to_utc(now or utc_now())
        habit.touch()
        session.add(habit)
        await session.flush()
        logger.info("Archived habit {}", habit_id)
        return habit

    @staticmethod
    async def soft_delete_habit(session: AsyncSession, habit_id: int, now: Optional[datetime] = None) -> Habit:
        """Move a habit to the trash; it becomes purgeable after the retention window."""
        habit = await HabitService.get_habit(session, habit_id)
        habit.deleted_at = to_utc(now or utc_now())
        habit.touch()
        session.add(habit)
        await session.flush()
        logger.info("Soft-deleted habit {}", habit_id)
        return habit
