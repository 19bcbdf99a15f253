"""
Occurrence generation for schedule habits.

Occurrences are never materialized ahead of time: a window is expanded from
the pattern on demand and reconciled with whatever outcomes were recorded.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .local_date import (
    format_local_date,
    get_zone,
    local_date_of,
    parse_date_string,
    start_of_local_day,
    to_utc,
    utc_now,
)
from .timeparse import format_clock, parse_hhmm

DayOfWeek = Literal["sun", "mon", "tue", "wed", "thu", "fri", "sat"]
OccurrenceStatus = Literal["pending", "completed", "missed", "skipped"]

DAY_NAMES: Tuple[str, ...] = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
DAY_MAP: Dict[str, int] = {name: i for i, name in enumerate(DAY_NAMES)}


class SchedulePattern(BaseModel):
    """
    Recurrence rule: ``daily`` fires every day; ``weekly`` and ``custom`` fire
    on the listed weekdays. ``starts_on``/``ends_on`` bound the local dates
    that may produce occurrences.
    """
    model_config = ConfigDict(frozen=True)

    type: Literal["daily", "weekly", "custom"]
    time: str
    days: Tuple[DayOfWeek, ...] = ()
    starts_on: Optional[date] = None
    ends_on: Optional[date] = None

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        t = parse_hhmm(v)
        return f"{t.hour:02d}:{t.minute:02d}"

    @field_validator("days", mode="before")
    @classmethod
    def normalize_days(cls, v):
        if v is None:
            return ()
        if isinstance(v, str):
            v = [v]
        return tuple({str(d).strip().lower(): None for d in v})

    @field_validator("days")
    @classmethod
    def order_days(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        # names are already checked against DayOfWeek here
        return tuple(sorted(v, key=DAY_MAP.__getitem__))

    @model_validator(mode="after")
    def check_days_and_window(self) -> "SchedulePattern":
        if self.type != "daily" and not self.days:
            raise ValueError(f"{self.type} schedule requires at least one day")
        if self.starts_on and self.ends_on and self.ends_on < self.starts_on:
            raise ValueError("ends_on must not be before starts_on")
        return self


class ScheduleOccurrence(BaseModel):
    scheduled_at: datetime
    local_date: str
    status: OccurrenceStatus


def _day_of_week(d: date) -> str:
    return DAY_NAMES[(d.weekday() + 1) % 7]


def is_day_in_pattern(d: date, pattern: SchedulePattern) -> bool:
    if pattern.starts_on and d < pattern.starts_on:
        return False
    if pattern.ends_on and d > pattern.ends_on:
        return False
    if pattern.type == "daily":
        return True
    return _day_of_week(d) in pattern.days


def create_scheduled_time(d: date, time_str: str, tz_name: str) -> datetime:
    """UTC instant of ``time_str`` on local date ``d`` in the timezone."""
    t = parse_hhmm(time_str)
    local = start_of_local_day(d, tz_name).replace(hour=t.hour, minute=t.minute, fold=0)
    return to_utc(local)


def _as_local_date(value: Union[date, datetime], tz_name: str) -> date:
    if isinstance(value, datetime):
        return local_date_of(value, tz_name)
    return value


def generate_occurrences(
    pattern: SchedulePattern,
    tz_name: str,
    range_start: Union[date, datetime],
    range_end: Union[date, datetime],
    now: Optional[datetime] = None,
) -> List[ScheduleOccurrence]:
    """
    Slots the pattern produces between two local dates, inclusive.

    A slot is ``missed`` when its instant is strictly before ``now`` and
    ``pending`` otherwise.
    """
    get_zone(tz_name)
    now_utc = to_utc(now or utc_now())
    current = _as_local_date(range_start, tz_name)
    last = _as_local_date(range_end, tz_name)

    occurrences: List[ScheduleOccurrence] = []
    while current <= last:
        if is_day_in_pattern(current, pattern):
            scheduled_at = create_scheduled_time(current, pattern.time, tz_name)
            occurrences.append(
                ScheduleOccurrence(
                    scheduled_at=scheduled_at,
                    local_date=format_local_date(current),
                    status="missed" if scheduled_at < now_utc else "pending",
                )
            )
        current += timedelta(days=1)
    return occurrences


def reconcile_occurrences(
    generated: Iterable[ScheduleOccurrence],
    recorded: Iterable[ScheduleOccurrence],
) -> List[ScheduleOccurrence]:
    """
    Merge generated slots with recorded outcomes keyed by scheduled instant.

    A recorded occurrence always wins for its slot. Recorded occurrences the
    current pattern no longer produces are kept as-is.
    """
    by_instant: Dict[datetime, ScheduleOccurrence] = {}
    for occ in generated:
        by_instant[to_utc(occ.scheduled_at)] = occ
    for occ in recorded:
        key = to_utc(occ.scheduled_at)
        by_instant[key] = ScheduleOccurrence(scheduled_at=key, local_date=occ.local_date, status=occ.status)
    return [by_instant[k] for k in sorted(by_instant)]


def build_occurrences(
    pattern: SchedulePattern,
    tz_name: str,
    range_start: Union[date, datetime],
    range_end: Union[date, datetime],
    recorded: Iterable[ScheduleOccurrence] = (),
    now: Optional[datetime] = None,
) -> List[ScheduleOccurrence]:
    """Generate a window and apply recorded outcomes that fall inside it."""
    first = _as_local_date(range_start, tz_name)
    last = _as_local_date(range_end, tz_name)
    in_window = [occ for occ in recorded if first <= parse_date_string(occ.local_date) <= last]
    generated = generate_occurrences(pattern, tz_name, first, last, now=now)
    return reconcile_occurrences(generated, in_window)


def get_today_occurrences(
    pattern: SchedulePattern, tz_name: str, now: Optional[datetime] = None
) -> List[ScheduleOccurrence]:
    now = now or utc_now()
    today = local_date_of(now, tz_name)
    return generate_occurrences(pattern, tz_name, today, today, now=now)


def is_occurrence_past(scheduled_at: datetime, now: Optional[datetime] = None) -> bool:
    return to_utc(now or utc_now()) > to_utc(scheduled_at)


def get_next_occurrence(
    pattern: SchedulePattern, tz_name: str, now: Optional[datetime] = None
) -> Optional[datetime]:
    """Next slot strictly after now: today if still ahead, else within 7 days."""
    now_utc = to_utc(now or utc_now())
    today = local_date_of(now_utc, tz_name)

    if is_day_in_pattern(today, pattern):
        todays = create_scheduled_time(today, pattern.time, tz_name)
        if todays > now_utc:
            return todays

    for i in range(1, 8):
        day = today + timedelta(days=i)
        if is_day_in_pattern(day, pattern):
            return create_scheduled_time(day, pattern.time, tz_name)
    return None


def is_scheduled_slot(pattern: SchedulePattern, tz_name: str, scheduled_at: datetime) -> bool:
    """Whether an instant is exactly one of the slots the pattern produces."""
    d = local_date_of(scheduled_at, tz_name)
    if not is_day_in_pattern(d, pattern):
        return False
    return create_scheduled_time(d, pattern.time, tz_name) == to_utc(scheduled_at)


def format_scheduled_time(scheduled_at: datetime, tz_name: str) -> str:
    """Clock time of an occurrence in the habit's timezone, e.g. 8:00 AM."""
    local = to_utc(scheduled_at).astimezone(get_zone(tz_name))
    return format_clock(local.time())


def format_schedule_pattern(pattern: SchedulePattern) -> str:
    time_str = format_clock(parse_hhmm(pattern.time))
    if pattern.type == "daily" or len(pattern.days) == 7:
        return f"Daily at {time_str}"
    day_names = ", ".join(d.capitalize() for d in pattern.days)
    return f"{day_names} at {time_str}"
