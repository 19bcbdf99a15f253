"""
Build habit statistics.

Unlike the quota engine, history helpers here sort their input themselves
(most recent ``local_period_start`` first) before counting.
"""
from __future__ import annotations

from typing import List, Literal, Protocol, Sequence

from pydantic import BaseModel

from ..utils.numbers import Number, normalize_number, round_half_up
from .quota_stats import QuickAddAmounts

BuildStatus = Literal["incomplete", "complete"]


class BuildPeriodLike(Protocol):
    status: str
    local_period_start: str


class BuildStats(BaseModel):
    total_done: float
    target: float
    remaining: float
    status: BuildStatus
    percent_complete: int


def calculate_build_stats(total_done: Number, target: Number) -> BuildStats:
    remaining = max(0, target - total_done)
    status: BuildStatus = "complete" if total_done >= target else "incomplete"
    if target > 0:
        percent = min(100, round_half_up(total_done / target * 100))
    else:
        # nothing to do counts as done
        percent = 100
    return BuildStats(
        total_done=total_done,
        target=target,
        remaining=remaining,
        status=status,
        percent_complete=percent,
    )


def _most_recent_first(periods: Sequence[BuildPeriodLike]) -> List[BuildPeriodLike]:
    return sorted(periods, key=lambda p: p.local_period_start, reverse=True)


def calculate_win_streak(periods: Sequence[BuildPeriodLike]) -> int:
    streak = 0
    for period in _most_recent_first(periods):
        if period.status != "complete":
            break
        streak += 1
    return streak


def calculate_wins_in_periods(periods: Sequence[BuildPeriodLike], n: int) -> int:
    recent = _most_recent_first(periods)[:n]
    return sum(1 for p in recent if p.status == "complete")


def calculate_completion_rate(periods: Sequence[BuildPeriodLike]) -> int:
    if not periods:
        return 0
    wins = sum(1 for p in periods if p.status == "complete")
    return round_half_up(wins / len(periods) * 100)


def get_build_quick_amounts(target: Number) -> QuickAddAmounts:
    if target <= 5:
        return QuickAddAmounts(small=1, medium=2, large=max(1, round_half_up(target)))
    if target <= 20:
        return QuickAddAmounts(small=1, medium=5, large=10)
    if target <= 100:
        return QuickAddAmounts(small=5, medium=10, large=25)
    return QuickAddAmounts(small=10, medium=50, large=100)


_SINGULAR_PLURAL = {
    "minutes": ("minute", "minutes"),
    "count": ("time", "times"),
    "pages": ("page", "pages"),
    "reps": ("rep", "reps"),
    "sessions": ("session", "sessions"),
}


def format_build_amount(amount: Number, unit: str) -> str:
    amount = normalize_number(amount)
    if unit == "steps":
        return f"{amount:,} steps"
    if unit in _SINGULAR_PLURAL:
        singular, plural = _SINGULAR_PLURAL[unit]
        return f"{amount} {singular if amount == 1 else plural}"
    return f"{amount} {unit}"
