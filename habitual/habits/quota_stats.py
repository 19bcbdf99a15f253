"""
Quota habit statistics.

Pure functions over period history. ``calculate_quota_stats`` expects
periods already sorted by ``local_period_start`` descending (most recent
first) and does not re-sort; callers own that ordering.
"""
from __future__ import annotations

from typing import Literal, Protocol, Sequence

from pydantic import BaseModel

from ..utils.numbers import Number, normalize_number, round_half_up

QuotaStatus = Literal["under", "near", "over"]


class PeriodLike(Protocol):
    status: str
    local_period_start: str


class QuotaStats(BaseModel):
    current_win_streak: int
    wins_last_7: int
    wins_last_30: int
    breach_count: int


class QuickAddAmounts(BaseModel):
    small: int
    medium: int
    large: int


# small, medium, large floors per unit
_QUICK_ADD_MINIMUMS = {
    "minutes": (5, 15, 30),
    "grams": (5, 10, 25),
    "currency": (1, 5, 10),
    "count": (1, 1, 1),
}
_DEFAULT_MINIMUMS = (1, 1, 1)


def calculate_quota_stats(periods: Sequence[PeriodLike], allow_soft_over: bool) -> QuotaStats:
    """
    ``under`` is a win. ``over`` is a breach unless soft-over is allowed;
    ``near`` is neither.
    """
    def is_win(status: str) -> bool:
        return status == "under"

    def is_breach(status: str) -> bool:
        return status == "over" and not allow_soft_over

    streak = 0
    for period in periods:
        if not is_win(period.status):
            break
        streak += 1

    return QuotaStats(
        current_win_streak=streak,
        wins_last_7=sum(1 for p in periods[:7] if is_win(p.status)),
        wins_last_30=sum(1 for p in periods[:30] if is_win(p.status)),
        breach_count=sum(1 for p in periods if is_breach(p.status)),
    )


def calculate_period_status(total_used: Number, quota_amount: Number, near_threshold_percent: Number) -> QuotaStatus:
    near_threshold = quota_amount * (near_threshold_percent / 100)
    if total_used >= quota_amount:
        return "over"
    if total_used >= near_threshold:
        return "near"
    return "under"


def calculate_remaining(total_used: Number, quota_amount: Number) -> Number:
    return max(0, quota_amount - total_used)


def format_quota_amount(amount: Number, unit: str) -> str:
    amount = normalize_number(amount)
    if unit == "currency":
        display = f"{amount:.2f}"
    elif isinstance(amount, int):
        display = str(amount)
    else:
        display = f"{amount:.1f}"

    if unit == "minutes":
        if amount >= 60:
            hours = int(amount // 60)
            mins = normalize_number(amount % 60)
            return f"{hours}h {mins}m" if mins > 0 else f"{hours}h"
        return f"{display}m"
    if unit == "grams":
        return f"{display}g"
    if unit == "currency":
        return f"${display}"
    return display


def get_quick_add_amounts(quota_amount: Number, unit: str) -> QuickAddAmounts:
    """10% / 25% / 50% of the quota, raised to the unit's minimums."""
    min_small, min_medium, min_large = _QUICK_ADD_MINIMUMS.get(unit, _DEFAULT_MINIMUMS)
    return QuickAddAmounts(
        small=max(min_small, round_half_up(quota_amount * 0.1)),
        medium=max(min_medium, round_half_up(quota_amount * 0.25)),
        large=max(min_large, round_half_up(quota_amount * 0.5)),
    )
