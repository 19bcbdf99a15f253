from __future__ import annotations
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from ..habits.build_stats import (
    BuildStatus,
    calculate_build_stats,
    calculate_completion_rate,
    calculate_win_streak,
    calculate_wins_in_periods,
    get_build_quick_amounts,
)
from ..habits.quota_stats import QuickAddAmounts
from ..models.habit import Habit, HabitPeriod, HabitUsageEvent
from ..utils.local_date import get_zone, parse_local_date
from ..utils.periods import format_period_remaining, get_current_period, get_period_for_date, get_period_label
from . import period_cache
from .habit_service import HabitService


class BuildHabitStatus(BaseModel):
    habit_id: int
    title: str
    unit: str
    total_done: float
    target: float
    remaining: float
    status: BuildStatus
    percent_complete: int
    period_label: str
    period_end_date: str
    time_left: str
    quick_add_amounts: QuickAddAmounts
    last_event_id: Optional[int] = None


class BuildHabitDetail(BuildHabitStatus):
    periods: List[HabitPeriod]
    current_period_events: List[HabitUsageEvent]
    win_streak: int
    wins_last_7: int
    wins_last_30: int
    completion_rate: int


class BuildHabitService:
    """
    Progress logging and current-period status for build habits.
    """

    @staticmethod
    def _status_for(habit: Habit):
        return lambda total: calculate_build_stats(total, habit.build_target or 0).status

    @staticmethod
    async def create_build_habit(
        session: AsyncSession,
        owner_id: int,
        title: str,
        target: float,
        unit: str,
        period: str,
        timezone: str,
    ) -> Habit:
        """Create a new build habit."""
        period_cache.validate_period_type(period)
        get_zone(timezone)
        if target is None or target <= 0:
            raise ValueError("target must be greater than zero")

        habit = Habit(
            owner_id=owner_id,
            title=title,
            kind="build",
            unit=unit,
            timezone=timezone,
            period=period,
            build_target=target,
        )
        session.add(habit)
        await session.flush()
        logger.info("Created build habit {} for owner {}", habit.id, owner_id)
        return habit

    @staticmethod
    async def log_progress(
        session: AsyncSession,
        habit_id: int,
        amount: float,
        occurred_at: Optional[datetime] = None,
        note: Optional[str] = None,
    ) -> HabitUsageEvent:
        habit = await HabitService.get_habit(session, habit_id, kind="build")
        event = await period_cache.record_event(session, habit, amount, occurred_at=occurred_at, note=note)
        await period_cache.refresh_period(
            session, habit, event.local_period_start, event.local_period_end, BuildHabitService._status_for(habit)
        )
        logger.info("Logged progress {} for build habit {} in period {}", amount, habit_id, event.local_period_start)
        return event

    @staticmethod
    async def undo_progress(session: AsyncSession, event_id: int) -> HabitPeriod:
        event = await period_cache.get_event(session, event_id)
        habit = await HabitService.get_habit(session, event.habit_id, kind="build")
        start, end = event.local_period_start, event.local_period_end

        await session.delete(event)
        await session.flush()

        row = await period_cache.refresh_period(session, habit, start, end, BuildHabitService._status_for(habit))
        logger.info("Undid progress event {} for build habit {}", event_id, habit.id)
        return row

    @staticmethod
    async def refresh_period(session: AsyncSession, habit_id: int, local_period_start: str) -> HabitPeriod:
        habit = await HabitService.get_habit(session, habit_id, kind="build")
        tz_name = HabitService.habit_timezone(habit)
        bounds = get_period_for_date(parse_local_date(local_period_start, tz_name), tz_name, habit.period)
        return await period_cache.refresh_period(
            session, habit, bounds.local_start_date, bounds.local_end_date, BuildHabitService._status_for(habit)
        )

    @staticmethod
    async def get_build_status(
        session: AsyncSession, habit_id: int, now: Optional[datetime] = None
    ) -> BuildHabitStatus:
        habit = await HabitService.get_habit(session, habit_id, kind="build")
        return await BuildHabitService._build_status(session, habit, now)

    @staticmethod
    async def _build_status(session: AsyncSession, habit: Habit, now: Optional[datetime]) -> BuildHabitStatus:
        tz_name = HabitService.habit_timezone(habit)
        current = get_current_period(tz_name, habit.period, now=now)
        target = habit.build_target or 0

        row = await period_cache.get_period_row(session, habit.id, current.local_start_date)
        stats = calculate_build_stats(row.total_amount if row else 0.0, target)
        events = await period_cache.list_period_events(session, habit.id, current.local_start_date)

        return BuildHabitStatus(
            habit_id=habit.id,
            title=habit.title,
            unit=habit.unit,
            total_done=stats.total_done,
            target=stats.target,
            remaining=stats.remaining,
            status=stats.status,
            percent_complete=stats.percent_complete,
            period_label=get_period_label(current.local_start_date, habit.period),
            period_end_date=current.local_end_date,
            time_left=format_period_remaining(current.end, tz_name, now=now),
            quick_add_amounts=get_build_quick_amounts(target),
            last_event_id=events[0].id if events else None,
        )

    @staticmethod
    async def list_build_statuses(
        session: AsyncSession, owner_id: int, active_only: bool = True, now: Optional[datetime] = None
    ) -> List[BuildHabitStatus]:
        habits = await HabitService.list_habits(session, owner_id=owner_id, kind="build", active_only=active_only)
        return [await BuildHabitService._build_status(session, h, now) for h in habits]

    @staticmethod
    async def get_build_detail(
        session: AsyncSession, habit_id: int, now: Optional[datetime] = None
    ) -> BuildHabitDetail:
        habit = await HabitService.get_habit(session, habit_id, kind="build")
        status = await BuildHabitService._build_status(session, habit, now)

        tz_name = HabitService.habit_timezone(habit)
        current = get_current_period(tz_name, habit.period, now=now)
        periods = await period_cache.list_periods(session, habit.id)
        events = await period_cache.list_period_events(session, habit.id, current.local_start_date)

        # An unfinished current period has not been lost yet
        settled = [
            p for p in periods
            if p.local_period_start != current.local_start_date or p.status == "complete"
        ]

        return BuildHabitDetail(
            **status.model_dump(),
            periods=periods,
            current_period_events=events,
            win_streak=calculate_win_streak(settled),
            wins_last_7=calculate_wins_in_periods(settled, 7),
            wins_last_30=calculate_wins_in_periods(settled, 30),
            completion_rate=calculate_completion_rate(settled),
        )

    @staticmethod
    async def close_elapsed_period(
        session: AsyncSession, habit: Habit, now: Optional[datetime] = None
    ) -> List[HabitPeriod]:
        """Record every untouched elapsed period as incomplete."""
        empty_status = BuildHabitService._status_for(habit)(0)
        return await period_cache.close_elapsed_period(session, habit, empty_status=empty_status, now=now)
