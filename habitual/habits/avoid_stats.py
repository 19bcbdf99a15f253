"""
Avoid habit statistics.

A day is ``clean`` unless it has a ``slipped`` or ``excluded`` state row, so
only deviations are ever stored.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Dict, List, Literal, Optional, Protocol, Sequence

from pydantic import BaseModel

from ..utils.local_date import format_local_date, parse_date_string, to_utc

AvoidDayState = Literal["clean", "slipped", "excluded"]
AVOID_DAY_STATES = ("clean", "slipped", "excluded")


class DayLike(Protocol):
    local_date: str
    status: str


class SlipLike(Protocol):
    id: Optional[int]
    local_date: str
    occurred_at: datetime


class AvoidStatus(BaseModel):
    today_status: AvoidDayState
    current_streak: int
    last_slip_date: Optional[str] = None
    today_slip_count: int
    last_today_slip_id: Optional[int] = None


def _day_map(days: Sequence[DayLike]) -> Dict[str, str]:
    return {d.local_date: d.status for d in days}


def get_day_state(days: Sequence[DayLike], local_date: str) -> AvoidDayState:
    return _day_map(days).get(local_date, "clean")


def calculate_avoid_streak(
    days: Sequence[DayLike],
    today: str,
    max_days: int = 365,
    since: Optional[str] = None,
) -> int:
    """
    Consecutive clean days counting back from ``today`` (inclusive).
    Excluded days are passed over without counting, a slipped day ends the
    run, and a day with no row is clean. Stops after ``max_days`` days or
    before ``since``.
    """
    states = _day_map(days)
    first: Optional[date] = parse_date_string(since) if since else None
    check = parse_date_string(today)

    streak = 0
    for _ in range(max_days):
        if first and check < first:
            break
        status = states.get(format_local_date(check))
        if status == "slipped":
            break
        if status != "excluded":
            streak += 1
        check -= timedelta(days=1)
    return streak


def find_last_slip_date(slips: Sequence[SlipLike]) -> Optional[str]:
    if not slips:
        return None
    return max(s.local_date for s in slips)


def slips_on(slips: Sequence[SlipLike], local_date: str) -> List[SlipLike]:
    """Slips of one local day, latest first."""
    same_day = [s for s in slips if s.local_date == local_date]
    return sorted(same_day, key=lambda s: (to_utc(s.occurred_at), s.id or 0), reverse=True)


def calculate_avoid_status(
    days: Sequence[DayLike],
    slips: Sequence[SlipLike],
    today: str,
    max_days: int = 365,
    since: Optional[str] = None,
) -> AvoidStatus:
    today_slips = slips_on(slips, today)
    return AvoidStatus(
        today_status=get_day_state(days, today),
        current_streak=calculate_avoid_streak(days, today, max_days=max_days, since=since),
        last_slip_date=find_last_slip_date(slips),
        today_slip_count=len(today_slips),
        last_today_slip_id=today_slips[0].id if today_slips else None,
    )


def format_streak(streak: int) -> str:
    return "1 day clean" if streak == 1 else f"{streak} days clean"
