"""
Cached per-period totals shared by quota and build habits.

Every logged amount is bucketed into the period containing it; the
``habit_periods`` row for that bucket is recomputed from the events rather
than incremented, so undo and late edits converge on the same total.
"""
from __future__ import annotations
from typing import Callable, List, Optional
from datetime import datetime, timedelta
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, func
from loguru import logger

from ..config import settings
from ..models.habit import Habit, HabitPeriod, HabitUsageEvent
from ..utils.local_date import get_local_date_string, to_utc, utc_now
from ..utils.periods import PERIOD_TYPES, get_period_for_date, get_previous_period
from .habit_service import HabitService


def validate_period_type(period: str) -> str:
    if period not in PERIOD_TYPES:
        raise ValueError(f"period must be one of {', '.join(PERIOD_TYPES)}, got {period!r}")
    return period


async def record_event(
    session: AsyncSession,
    habit: Habit,
    amount: float,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
) -> HabitUsageEvent:
    """Insert an event in the period containing ``occurred_at``."""
    if amount is None or amount <= 0:
        raise ValueError("amount must be greater than zero")

    tz_name = HabitService.habit_timezone(habit)
    when = to_utc(occurred_at or utc_now())
    bounds = get_period_for_date(when, tz_name, habit.period)

    event = HabitUsageEvent(
        habit_id=habit.id,
        occurred_at=when,
        local_date=get_local_date_string(when, tz_name),
        local_period_start=bounds.local_start_date,
        local_period_end=bounds.local_end_date,
        amount=amount,
        note=note,
    )
    session.add(event)
    await session.flush()
    return event


async def get_event(session: AsyncSession, event_id: int) -> HabitUsageEvent:
    event = await session.get(HabitUsageEvent, event_id)
    if not event:
        raise ValueError(f"Event {event_id} not found")
    return event


async def sum_period(session: AsyncSession, habit_id: int, local_period_start: str) -> float:
    result = await session.execute(
        select(func.coalesce(func.sum(HabitUsageEvent.amount), 0)).where(
            HabitUsageEvent.habit_id == habit_id,
            HabitUsageEvent.local_period_start == local_period_start,
        )
    )
    return float(result.scalar_one())


async def get_period_row(session: AsyncSession, habit_id: int, local_period_start: str) -> Optional[HabitPeriod]:
    result = await session.execute(
        select(HabitPeriod).where(
            HabitPeriod.habit_id == habit_id,
            HabitPeriod.local_period_start == local_period_start,
        )
    )
    return result.scalar_one_or_none()


async def upsert_period(
    session: AsyncSession,
    habit_id: int,
    local_period_start: str,
    local_period_end: str,
    total: float,
    status: str,
) -> HabitPeriod:
    row = await get_period_row(session, habit_id, local_period_start)
    if row:
        row.total_amount = total
        row.status = status
        row.local_period_end = local_period_end
        row.updated_at = utc_now()
    else:
        row = HabitPeriod(
            habit_id=habit_id,
            local_period_start=local_period_start,
            local_period_end=local_period_end,
            total_amount=total,
            status=status,
        )
    session.add(row)
    await session.flush()
    return row


async def refresh_period(
    session: AsyncSession,
    habit: Habit,
    local_period_start: str,
    local_period_end: str,
    status_for: Callable[[float], str],
) -> HabitPeriod:
    """Recompute a period's total from its events and store the derived status."""
    total = await sum_period(session, habit.id, local_period_start)
    row = await upsert_period(session, habit.id, local_period_start, local_period_end, total, status_for(total))
    logger.debug("Period {} of habit {} now totals {} ({})", local_period_start, habit.id, total, row.status)
    return row


async def list_periods(
    session: AsyncSession,
    habit_id: int,
    range_start: Optional[str] = None,
    range_end: Optional[str] = None,
) -> List[HabitPeriod]:
    """Period history, most recent first."""
    query = select(HabitPeriod).where(HabitPeriod.habit_id == habit_id)
    if range_start:
        query = query.where(HabitPeriod.local_period_start >= range_start)
    if range_end:
        query = query.where(HabitPeriod.local_period_end <= range_end)
    result = await session.execute(query.order_by(HabitPeriod.local_period_start.desc()))
    return list(result.scalars().all())


async def list_period_events(session: AsyncSession, habit_id: int, local_period_start: str) -> List[HabitUsageEvent]:
    """Events of one period, latest first."""
    result = await session.execute(
        select(HabitUsageEvent)
        .where(
            HabitUsageEvent.habit_id == habit_id,
            HabitUsageEvent.local_period_start == local_period_start,
        )
        .order_by(HabitUsageEvent.occurred_at.desc(), HabitUsageEvent.id.desc())
    )
    return list(result.scalars().all())


async def close_elapsed_period(
    session: AsyncSession,
    habit: Habit,
    empty_status: str,
    now: Optional[datetime] = None,
) -> List[HabitPeriod]:
    """
    Rollover: make sure every elapsed period since the habit was created has
    a row, so a period with no activity still shows up in history. Walks back
    from the period before the current one and fills each gap with an empty
    row; existing rows are left untouched. Returns the new rows, newest first.
    """
    tz_name = HabitService.habit_timezone(habit)
    created = to_utc(habit.created_at) if habit.created_at else None
    bounds = get_previous_period(tz_name, habit.period, now=now)

    result = await session.execute(
        select(HabitPeriod.local_period_start).where(
            HabitPeriod.habit_id == habit.id,
            HabitPeriod.local_period_start <= bounds.local_start_date,
        )
    )
    existing = set(result.scalars().all())

    created_rows: List[HabitPeriod] = []
    for _ in range(settings.PERIOD_BACKFILL_LIMIT):
        if created and created > to_utc(bounds.end):
            break
        # Without a creation time there is no lower bound; stop at the first row
        if created is None and bounds.local_start_date in existing:
            break
        if bounds.local_start_date not in existing:
            row = await upsert_period(
                session, habit.id, bounds.local_start_date, bounds.local_end_date, 0.0, empty_status
            )
            created_rows.append(row)
        bounds = get_period_for_date(to_utc(bounds.start) - timedelta(microseconds=1), tz_name, habit.period)

    if created_rows:
        logger.info(
            "Closed {} empty period(s) for habit {} ({} .. {})",
            len(created_rows), habit.id, created_rows[-1].local_period_start, created_rows[0].local_period_start,
        )
    return created_rows
