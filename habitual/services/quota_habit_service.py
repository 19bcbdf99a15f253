from __future__ import annotations
from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from ..config import settings
from ..habits.quota_stats import (
    QuickAddAmounts,
    QuotaStats,
    QuotaStatus,
    calculate_period_status,
    calculate_quota_stats,
    calculate_remaining,
    get_quick_add_amounts,
)
from ..models.habit import Habit, HabitPeriod, HabitUsageEvent
from ..utils.local_date import get_zone, parse_local_date
from ..utils.periods import format_period_remaining, get_current_period, get_period_for_date, get_period_label
from . import period_cache
from .habit_service import HabitService


class QuotaHabitStatus(BaseModel):
    habit_id: int
    title: str
    unit: str
    used: float
    remaining: float
    status: QuotaStatus
    period_label: str
    period_end_date: str
    time_left: str
    quick_add_amounts: QuickAddAmounts
    last_usage_event_id: Optional[int] = None


class QuotaHabitDetail(QuotaHabitStatus):
    periods: List[HabitPeriod]
    current_period_events: List[HabitUsageEvent]
    stats: QuotaStats


class QuotaHabitService:
    """
    Usage logging and current-period status for quota habits.
    """

    @staticmethod
    def _threshold(habit: Habit) -> int:
        if habit.near_threshold_percent is None:
            return settings.DEFAULT_NEAR_THRESHOLD_PERCENT
        return habit.near_threshold_percent

    @staticmethod
    def _status_for(habit: Habit):
        return lambda total: calculate_period_status(total, habit.quota_amount or 0, QuotaHabitService._threshold(habit))

    @staticmethod
    async def create_quota_habit(
        session: AsyncSession,
        owner_id: int,
        title: str,
        quota_amount: float,
        unit: str,
        period: str,
        timezone: str,
        near_threshold_percent: Optional[int] = None,
        allow_soft_over: bool = False,
    ) -> Habit:
        """Create a new quota habit."""
        period_cache.validate_period_type(period)
        get_zone(timezone)
        if quota_amount is None or quota_amount <= 0:
            raise ValueError("quota_amount must be greater than zero")
        if near_threshold_percent is None:
            near_threshold_percent = settings.DEFAULT_NEAR_THRESHOLD_PERCENT
        if not 0 < near_threshold_percent <= 100:
            raise ValueError("near_threshold_percent must be between 1 and 100")

        habit = Habit(
            owner_id=owner_id,
            title=title,
            kind="quota",
            unit=unit,
            timezone=timezone,
            period=period,
            quota_amount=quota_amount,
            near_threshold_percent=near_threshold_percent,
            allow_soft_over=allow_soft_over,
        )
        session.add(habit)
        await session.flush()
        logger.info("Created quota habit {} for owner {}", habit.id, owner_id)
        return habit

    @staticmethod
    async def log_usage(
        session: AsyncSession,
        habit_id: int,
        amount: float,
        occurred_at: Optional[datetime] = None,
        note: Optional[str] = None,
    ) -> HabitUsageEvent:
        """Log usage and recompute the affected period."""
        habit = await HabitService.get_habit(session, habit_id, kind="quota")
        event = await period_cache.record_event(session, habit, amount, occurred_at=occurred_at, note=note)
        await period_cache.refresh_period(
            session, habit, event.local_period_start, event.local_period_end, QuotaHabitService._status_for(habit)
        )
        logger.info("Logged usage {} for quota habit {} in period {}", amount, habit_id, event.local_period_start)
        return event

    @staticmethod
    async def undo_usage(session: AsyncSession, event_id: int) -> HabitPeriod:
        """Remove a usage event and recompute its period."""
        event = await period_cache.get_event(session, event_id)
        habit = await HabitService.get_habit(session, event.habit_id, kind="quota")
        start, end = event.local_period_start, event.local_period_end

        await session.delete(event)
        await session.flush()

        row = await period_cache.refresh_period(session, habit, start, end, QuotaHabitService._status_for(habit))
        logger.info("Undid usage event {} for quota habit {}", event_id, habit.id)
        return row

    @staticmethod
    async def refresh_period(session: AsyncSession, habit_id: int, local_period_start: str) -> HabitPeriod:
        """Recompute the cached total and status of the period starting on ``local_period_start``."""
        habit = await HabitService.get_habit(session, habit_id, kind="quota")
        tz_name = HabitService.habit_timezone(habit)
        bounds = get_period_for_date(parse_local_date(local_period_start, tz_name), tz_name, habit.period)
        return await period_cache.refresh_period(
            session, habit, bounds.local_start_date, bounds.local_end_date, QuotaHabitService._status_for(habit)
        )

    @staticmethod
    async def get_quota_status(
        session: AsyncSession, habit_id: int, now: Optional[datetime] = None
    ) -> QuotaHabitStatus:
        habit = await HabitService.get_habit(session, habit_id, kind="quota")
        return await QuotaHabitService._build_status(session, habit, now)

    @staticmethod
    async def _build_status(session: AsyncSession, habit: Habit, now: Optional[datetime]) -> QuotaHabitStatus:
        tz_name = HabitService.habit_timezone(habit)
        current = get_current_period(tz_name, habit.period, now=now)
        quota_amount = habit.quota_amount or 0

        row = await period_cache.get_period_row(session, habit.id, current.local_start_date)
        used = row.total_amount if row else 0.0
        events = await period_cache.list_period_events(session, habit.id, current.local_start_date)

        return QuotaHabitStatus(
            habit_id=habit.id,
            title=habit.title,
            unit=habit.unit,
            used=used,
            remaining=calculate_remaining(used, quota_amount),
            status=calculate_period_status(used, quota_amount, QuotaHabitService._threshold(habit)),
            period_label=get_period_label(current.local_start_date, habit.period),
            period_end_date=current.local_end_date,
            time_left=format_period_remaining(current.end, tz_name, now=now),
            quick_add_amounts=get_quick_add_amounts(quota_amount, habit.unit),
            last_usage_event_id=events[0].id if events else None,
        )

    @staticmethod
    async def list_quota_statuses(
        session: AsyncSession, owner_id: int, active_only: bool = True, now: Optional[datetime] = None
    ) -> List[QuotaHabitStatus]:
        habits = await HabitService.list_habits(session, owner_id=owner_id, kind="quota", active_only=active_only)
        return [await QuotaHabitService._build_status(session, h, now) for h in habits]

    @staticmethod
    async def get_quota_detail(
        session: AsyncSession,
        habit_id: int,
        now: Optional[datetime] = None,
        range_start: Optional[str] = None,
        range_end: Optional[str] = None,
    ) -> QuotaHabitDetail:
        """Current status plus period history (most recent first) and stats."""
        habit = await HabitService.get_habit(session, habit_id, kind="quota")
        status = await QuotaHabitService._build_status(session, habit, now)

        tz_name = HabitService.habit_timezone(habit)
        current = get_current_period(tz_name, habit.period, now=now)
        periods = await period_cache.list_periods(session, habit.id, range_start, range_end)
        events = await period_cache.list_period_events(session, habit.id, current.local_start_date)

        return QuotaHabitDetail(
            **status.model_dump(),
            periods=periods,
            current_period_events=events,
            stats=calculate_quota_stats(periods, habit.allow_soft_over),
        )

    @staticmethod
    async def close_elapsed_period(
        session: AsyncSession, habit: Habit, now: Optional[datetime] = None
    ) -> List[HabitPeriod]:
        """Record every untouched elapsed period as a zero-usage win."""
        empty_status = QuotaHabitService._status_for(habit)(0)
        return await period_cache.close_elapsed_period(session, habit, empty_status=empty_status, now=now)
