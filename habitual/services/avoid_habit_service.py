from __future__ import annotations
from typing import List, Optional
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, delete, func
from loguru import logger

from ..config import settings
from ..habits.avoid_stats import AvoidStatus, calculate_avoid_status
from ..models.habit import Habit, HabitDay, HabitSlip
from ..utils.local_date import (
    format_local_date,
    get_days_ago_local_date_string,
    get_local_date_string,
    get_today_local_date_string,
    get_zone,
    parse_date_string,
    to_utc,
    utc_now,
)
from .habit_service import HabitService


class AvoidHabitStatus(AvoidStatus):
    habit_id: int
    title: str
    timezone: str


class AvoidHabitDetail(AvoidHabitStatus):
    days: List[HabitDay]
    slips: List[HabitSlip]


class AvoidHabitService:
    """
    Avoid habits: every slip is logged as an event and marks its local day
    as slipped. Excluded days are set by the user and survive slips.
    """

    @staticmethod
    async def create_avoid_habit(
        session: AsyncSession,
        owner_id: int,
        title: str,
        timezone: str,
        description: Optional[str] = None,
    ) -> Habit:
        get_zone(timezone)
        habit = Habit(
            owner_id=owner_id,
            title=title,
            description=description,
            kind="avoid",
            unit="count",
            timezone=timezone,
        )
        session.add(habit)
        await session.flush()
        logger.info("Created avoid habit {} for owner {}", habit.id, owner_id)
        return habit

    @staticmethod
    async def _get_day(session: AsyncSession, habit_id: int, local_date: str) -> Optional[HabitDay]:
        result = await session.execute(
            select(HabitDay).where(HabitDay.habit_id == habit_id, HabitDay.local_date == local_date)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _set_day(session: AsyncSession, habit_id: int, local_date: str, status: str) -> HabitDay:
        day = await AvoidHabitService._get_day(session, habit_id, local_date)
        if day:
            day.status = status
            day.updated_at = utc_now()
        else:
            day = HabitDay(habit_id=habit_id, local_date=local_date, status=status)
        session.add(day)
        await session.flush()
        return day

    @staticmethod
    async def _slip_ids_on(session: AsyncSession, habit_id: int, local_date: str) -> List[int]:
        result = await session.execute(
            select(HabitSlip.id).where(HabitSlip.habit_id == habit_id, HabitSlip.local_date == local_date)
        )
        return list(result.scalars().all())

    @staticmethod
    async def log_slip(
        session: AsyncSession,
        habit_id: int,
        occurred_at: Optional[datetime] = None,
        severity: Optional[int] = None,
        note: Optional[str] = None,
    ) -> HabitSlip:
        """Log a slip; its local day becomes slipped unless the day is excluded."""
        if severity is not None and severity not in (1, 2, 3):
            raise ValueError(f"severity must be 1, 2 or 3, got {severity!r}")

        habit = await HabitService.get_habit(session, habit_id, kind="avoid")
        tz_name = HabitService.habit_timezone(habit)
        when = to_utc(occurred_at or utc_now())
        local_date = get_local_date_string(when, tz_name)

        slip = HabitSlip(habit_id=habit.id, occurred_at=when, local_date=local_date, severity=severity, note=note)
        session.add(slip)
        await session.flush()

        day = await AvoidHabitService._get_day(session, habit.id, local_date)
        if not day or day.status != "excluded":
            await AvoidHabitService._set_day(session, habit.id, local_date, "slipped")
        logger.info("Logged slip {} for habit {} on {}", slip.id, habit.id, local_date)
        return slip

    @staticmethod
    async def undo_slip(session: AsyncSession, slip_id: int) -> HabitSlip:
        """Delete a slip; a day left without slips goes back to clean."""
        slip = await session.get(HabitSlip, slip_id)
        if not slip:
            raise ValueError(f"Slip {slip_id} not found")
        await HabitService.get_habit(session, slip.habit_id, kind="avoid")

        await session.delete(slip)
        await session.flush()

        if not await AvoidHabitService._slip_ids_on(session, slip.habit_id, slip.local_date):
            day = await AvoidHabitService._get_day(session, slip.habit_id, slip.local_date)
            if day and day.status != "excluded":
                await session.delete(day)
                await session.flush()
        logger.info("Undid slip {} of habit {}", slip_id, slip.habit_id)
        return slip

    @staticmethod
    async def set_day_excluded(session: AsyncSession, habit_id: int, local_date: str, excluded: bool) -> Optional[HabitDay]:
        """
        Exclude a day from the streak, or restore it. A restored day is
        slipped if it has slips and clean (no row) otherwise.
        """
        local_date = format_local_date(parse_date_string(local_date))
        habit = await HabitService.get_habit(session, habit_id, kind="avoid")

        if excluded:
            return await AvoidHabitService._set_day(session, habit.id, local_date, "excluded")

        if await AvoidHabitService._slip_ids_on(session, habit.id, local_date):
            return await AvoidHabitService._set_day(session, habit.id, local_date, "slipped")

        await session.execute(delete(HabitDay).where(HabitDay.habit_id == habit.id, HabitDay.local_date == local_date))
        await session.flush()
        return None

    @staticmethod
    async def _days_since(session: AsyncSession, habit_id: int, first: str) -> List[HabitDay]:
        result = await session.execute(
            select(HabitDay)
            .where(HabitDay.habit_id == habit_id, HabitDay.local_date >= first)
            .order_by(HabitDay.local_date.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def _slips_since(session: AsyncSession, habit_id: int, first: Optional[str] = None) -> List[HabitSlip]:
        query = select(HabitSlip).where(HabitSlip.habit_id == habit_id)
        if first:
            query = query.where(HabitSlip.local_date >= first)
        result = await session.execute(query.order_by(HabitSlip.occurred_at.desc(), HabitSlip.id.desc()))
        return list(result.scalars().all())

    @staticmethod
    def _status(habit: Habit, days: List[HabitDay], slips: List[HabitSlip], now: Optional[datetime]) -> AvoidStatus:
        tz_name = HabitService.habit_timezone(habit)
        since = get_local_date_string(to_utc(habit.created_at), tz_name) if habit.created_at else None
        return calculate_avoid_status(
            days,
            slips,
            get_today_local_date_string(tz_name, now=now),
            max_days=settings.AVOID_STREAK_MAX_DAYS,
            since=since,
        )

    @staticmethod
    async def get_avoid_status(session: AsyncSession, habit_id: int, now: Optional[datetime] = None) -> AvoidHabitStatus:
        habit = await HabitService.get_habit(session, habit_id, kind="avoid")
        tz_name = HabitService.habit_timezone(habit)
        first = get_days_ago_local_date_string(settings.AVOID_STREAK_MAX_DAYS, tz_name, now=now)

        days = await AvoidHabitService._days_since(session, habit.id, first)
        today = get_today_local_date_string(tz_name, now=now)
        today_slips = await AvoidHabitService._slips_since(session, habit.id, today)
        status = AvoidHabitService._status(habit, days, today_slips, now)

        result = await session.execute(select(func.max(HabitSlip.local_date)).where(HabitSlip.habit_id == habit.id))
        status.last_slip_date = result.scalar_one()
        return AvoidHabitStatus(habit_id=habit.id, title=habit.title, timezone=tz_name, **status.model_dump())

    @staticmethod
    async def list_avoid_habits(
        session: AsyncSession,
        owner_id: Optional[int] = None,
        active_only: bool = True,
        now: Optional[datetime] = None,
    ) -> List[AvoidHabitStatus]:
        habits = await HabitService.list_habits(session, owner_id=owner_id, kind="avoid", active_only=active_only)
        return [await AvoidHabitService.get_avoid_status(session, h.id, now=now) for h in habits]

    @staticmethod
    async def get_avoid_detail(
        session: AsyncSession,
        habit_id: int,
        days_back: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> AvoidHabitDetail:
        """Status plus day states and slips of the last ``days_back`` days."""
        habit = await HabitService.get_habit(session, habit_id, kind="avoid")
        tz_name = HabitService.habit_timezone(habit)
        window = days_back if days_back is not None else settings.AVOID_HISTORY_DAYS
        first = get_days_ago_local_date_string(window, tz_name, now=now)

        status = await AvoidHabitService.get_avoid_status(session, habit.id, now=now)
        return AvoidHabitDetail(
            **status.model_dump(),
            days=await AvoidHabitService._days_since(session, habit.id, first),
            slips=await AvoidHabitService._slips_since(session, habit.id, first),
        )
