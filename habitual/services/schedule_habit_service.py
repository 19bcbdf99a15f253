from __future__ import annotations
from typing import List, Literal, Optional, Union
from datetime import date, datetime, timedelta
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from loguru import logger

from ..config import settings
from ..habits.schedule_stats import ScheduleStats, calculate_schedule_stats
from ..models.habit import Habit, ScheduleOccurrenceRecord
from ..utils.local_date import format_local_date, get_zone, local_date_of, to_utc, utc_now
from ..utils.schedule import (
    ScheduleOccurrence,
    SchedulePattern,
    build_occurrences,
    format_schedule_pattern,
    get_next_occurrence,
    is_scheduled_slot,
)
from .habit_service import HabitService


class ScheduleHabitView(BaseModel):
    habit_id: int
    title: str
    timezone: str
    pattern: SchedulePattern
    pattern_label: str
    today_occurrences: List[ScheduleOccurrence]
    next_occurrence: Optional[datetime] = None
    stats: ScheduleStats


def _to_occurrence(record: ScheduleOccurrenceRecord) -> ScheduleOccurrence:
    return ScheduleOccurrence(
        scheduled_at=to_utc(record.scheduled_at),
        local_date=record.local_date,
        status=record.status,
    )


class ScheduleHabitService:
    """
    Schedule habits: occurrences are generated from the pattern on demand and
    only the outcomes a user records are stored.
    """

    @staticmethod
    def get_pattern(habit: Habit) -> SchedulePattern:
        if not habit.schedule_pattern:
            raise ValueError(f"Habit {habit.id} has no schedule pattern")
        return SchedulePattern.model_validate(habit.schedule_pattern)

    @staticmethod
    async def create_schedule_habit(
        session: AsyncSession,
        owner_id: int,
        title: str,
        pattern: Union[SchedulePattern, dict],
        timezone: str,
    ) -> Habit:
        """Create a new schedule habit; the pattern is validated before saving."""
        get_zone(timezone)
        if not isinstance(pattern, SchedulePattern):
            pattern = SchedulePattern.model_validate(pattern)

        habit = Habit(
            owner_id=owner_id,
            title=title,
            kind="schedule",
            unit="sessions",
            timezone=timezone,
            schedule_pattern=pattern.model_dump(mode="json"),
        )
        session.add(habit)
        await session.flush()
        logger.info("Created schedule habit {} for owner {}: {}", habit.id, owner_id, format_schedule_pattern(pattern))
        return habit

    @staticmethod
    async def _recorded_between(
        session: AsyncSession, habit_id: int, first: str, last: str
    ) -> List[ScheduleOccurrenceRecord]:
        result = await session.execute(
            select(ScheduleOccurrenceRecord)
            .where(
                ScheduleOccurrenceRecord.habit_id == habit_id,
                ScheduleOccurrenceRecord.local_date >= first,
                ScheduleOccurrenceRecord.local_date <= last,
            )
            .order_by(ScheduleOccurrenceRecord.scheduled_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_occurrences(
        session: AsyncSession,
        habit_id: int,
        range_start: Union[date, datetime],
        range_end: Union[date, datetime],
        now: Optional[datetime] = None,
    ) -> List[ScheduleOccurrence]:
        """Occurrences in a local-date window; recorded outcomes win over generated ones."""
        habit = await HabitService.get_habit(session, habit_id, kind="schedule")
        tz_name = HabitService.habit_timezone(habit)
        pattern = ScheduleHabitService.get_pattern(habit)

        first = range_start if not isinstance(range_start, datetime) else local_date_of(range_start, tz_name)
        last = range_end if not isinstance(range_end, datetime) else local_date_of(range_end, tz_name)
        records = await ScheduleHabitService._recorded_between(
            session, habit.id, format_local_date(first), format_local_date(last)
        )
        return build_occurrences(
            pattern, tz_name, first, last, recorded=[_to_occurrence(r) for r in records], now=now
        )

    @staticmethod
    async def get_today_occurrences(
        session: AsyncSession, habit_id: int, now: Optional[datetime] = None
    ) -> List[ScheduleOccurrence]:
        habit = await HabitService.get_habit(session, habit_id, kind="schedule")
        today = local_date_of(now or utc_now(), HabitService.habit_timezone(habit))
        return await ScheduleHabitService.get_occurrences(session, habit_id, today, today, now=now)

    @staticmethod
    async def mark_occurrence(
        session: AsyncSession,
        habit_id: int,
        scheduled_at: datetime,
        status: Literal["completed", "skipped"],
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ScheduleOccurrenceRecord:
        """Record an outcome for a slot, replacing any earlier outcome for it."""
        if status not in ("completed", "skipped"):
            raise ValueError(f"Occurrences can only be marked completed or skipped, not {status!r}")

        habit = await HabitService.get_habit(session, habit_id, kind="schedule")
        tz_name = HabitService.habit_timezone(habit)
        pattern = ScheduleHabitService.get_pattern(habit)
        slot = to_utc(scheduled_at)
        if not is_scheduled_slot(pattern, tz_name, slot):
            raise ValueError(f"{slot.isoformat()} is not a scheduled slot of habit {habit_id}")

        result = await session.execute(
            select(ScheduleOccurrenceRecord).where(
                ScheduleOccurrenceRecord.habit_id == habit.id,
                ScheduleOccurrenceRecord.scheduled_at == slot,
            )
        )
        record = result.scalar_one_or_none()
        stamp = to_utc(now or utc_now())
        completed_at = stamp if status == "completed" else None

        if record:
            record.status = status
            record.completed_at = completed_at
            if note:
                record.note = note
            record.updated_at = stamp
        else:
            record = ScheduleOccurrenceRecord(
                habit_id=habit.id,
                scheduled_at=slot,
                local_date=format_local_date(local_date_of(slot, tz_name)),
                status=status,
                completed_at=completed_at,
                note=note,
            )
        session.add(record)
        await session.flush()
        logger.info("Marked occurrence {} of habit {} as {}", slot.isoformat(), habit_id, status)
        return record

    @staticmethod
    async def get_schedule_stats(
        session: AsyncSession,
        habit_id: int,
        now: Optional[datetime] = None,
        days: Optional[int] = None,
    ) -> ScheduleStats:
        """
        Stats over the last ``days`` local days. Slots are generated from the
        pattern so unrecorded past slots count as missed; the window never
        starts before the day the habit was created.
        """
        habit = await HabitService.get_habit(session, habit_id, kind="schedule")
        tz_name = HabitService.habit_timezone(habit)
        pattern = ScheduleHabitService.get_pattern(habit)
        now = to_utc(now or utc_now())
        today = local_date_of(now, tz_name)
        window = days if days is not None else settings.SCHEDULE_STATS_WINDOW_DAYS

        first = today - timedelta(days=window)
        if habit.created_at:
            first = max(first, local_date_of(to_utc(habit.created_at), tz_name))
        if first > today:
            return calculate_schedule_stats([])

        records = await ScheduleHabitService._recorded_between(
            session, habit.id, format_local_date(first), format_local_date(today)
        )
        occurrences = build_occurrences(
            pattern, tz_name, first, today, recorded=[_to_occurrence(r) for r in records], now=now
        )
        return calculate_schedule_stats(occurrences)

    @staticmethod
    async def get_schedule_view(
        session: AsyncSession, habit_id: int, now: Optional[datetime] = None
    ) -> ScheduleHabitView:
        habit = await HabitService.get_habit(session, habit_id, kind="schedule")
        tz_name = HabitService.habit_timezone(habit)
        pattern = ScheduleHabitService.get_pattern(habit)

        return ScheduleHabitView(
            habit_id=habit.id,
            title=habit.title,
            timezone=tz_name,
            pattern=pattern,
            pattern_label=format_schedule_pattern(pattern),
            today_occurrences=await ScheduleHabitService.get_today_occurrences(session, habit_id, now=now),
            next_occurrence=get_next_occurrence(pattern, tz_name, now=now),
            stats=await ScheduleHabitService.get_schedule_stats(session, habit_id, now=now),
        )
