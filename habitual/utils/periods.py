"""
Period boundaries for quota and build habits.

Day, week (Sunday through Saturday) and calendar-month windows are computed
on the local calendar of the habit's timezone; ``start`` and ``end`` are
aware datetimes in that timezone, ``end`` being the last microsecond before
the next period begins.
"""
from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from .local_date import (
    format_local_date,
    get_zone,
    local_date_of,
    parse_date_string,
    start_of_local_day,
    to_utc,
    utc_now,
)

PeriodType = Literal["day", "week", "month"]
PERIOD_TYPES: Tuple[str, ...] = ("day", "week", "month")

# Sunday
WEEK_STARTS_ON = 0


class PeriodBounds(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    local_start_date: str
    local_end_date: str


def _local_range(local_day: date, period: str) -> Tuple[date, date]:
    if period == "day":
        return local_day, local_day
    if period == "week":
        # date.weekday(): Monday == 0 ... Sunday == 6
        offset = (local_day.weekday() + 1 - WEEK_STARTS_ON) % 7
        first = local_day - timedelta(days=offset)
        return first, first + timedelta(days=6)
    if period == "month":
        last_day = calendar.monthrange(local_day.year, local_day.month)[1]
        return local_day.replace(day=1), local_day.replace(day=last_day)
    raise ValueError(f"Unknown period type: {period!r}")


def get_period_for_date(instant: datetime, tz_name: str, period: PeriodType) -> PeriodBounds:
    """Bounds of the period containing ``instant`` in the timezone."""
    zone = get_zone(tz_name)
    first, last = _local_range(local_date_of(instant, tz_name), period)

    start = start_of_local_day(first, tz_name)
    next_start = start_of_local_day(last + timedelta(days=1), tz_name)
    end = (next_start.astimezone(timezone.utc) - timedelta(microseconds=1)).astimezone(zone)

    return PeriodBounds(
        start=start,
        end=end,
        local_start_date=format_local_date(first),
        local_end_date=format_local_date(last),
    )


def get_current_period(tz_name: str, period: PeriodType, now: Optional[datetime] = None) -> PeriodBounds:
    return get_period_for_date(now or utc_now(), tz_name, period)


def get_previous_period(tz_name: str, period: PeriodType, now: Optional[datetime] = None) -> PeriodBounds:
    """The period that ended immediately before the current one."""
    current = get_current_period(tz_name, period, now=now)
    return get_period_for_date(to_utc(current.start) - timedelta(microseconds=1), tz_name, period)


def is_same_period(a: datetime, b: datetime, tz_name: str, period: PeriodType) -> bool:
    return (
        get_period_for_date(a, tz_name, period).local_start_date
        == get_period_for_date(b, tz_name, period).local_start_date
    )


def get_period_label(period_start: str, period: PeriodType) -> str:
    """Human label for a period, e.g. "Week of Mar 3", "March 2025", "Mon, Mar 3"."""
    d = parse_date_string(period_start)
    if period == "day":
        return f"{d:%a}, {d:%b} {d.day}"
    if period == "week":
        return f"Week of {d:%b} {d.day}"
    if period == "month":
        return f"{d:%B %Y}"
    raise ValueError(f"Unknown period type: {period!r}")


def get_current_period_label(tz_name: str, period: PeriodType, now: Optional[datetime] = None) -> str:
    current = get_current_period(tz_name, period, now=now)
    return get_period_label(current.local_start_date, period)


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'} left"


def format_period_remaining(period_end: datetime, tz_name: str, now: Optional[datetime] = None) -> str:
    """
    Coarse time left in a period. Each unit is floor-divided, so 3h59m is
    "3 hours left" and anything at or past the end is "Period ended".
    """
    get_zone(tz_name)
    diff = to_utc(period_end) - to_utc(now or utc_now())
    if diff <= timedelta(0):
        return "Period ended"

    hours = diff // timedelta(hours=1)
    days = hours // 24
    if days > 0:
        return _plural(days, "day")
    if hours > 0:
        return _plural(hours, "hour")
    return _plural(diff // timedelta(minutes=1), "minute")
