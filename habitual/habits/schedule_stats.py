"""Schedule habit statistics over recorded occurrences."""
from __future__ import annotations

from typing import List, Sequence

from pydantic import BaseModel

from ..utils.local_date import to_utc
from ..utils.numbers import round_half_up
from ..utils.schedule import OccurrenceStatus, ScheduleOccurrence


class ScheduleStats(BaseModel):
    completion_rate: int
    completed_last_7: int
    missed_last_7: int
    skipped_last_7: int
    consistency_run: int
    total_occurrences: int
    total_completed: int
    total_missed: int


_STATUS_TEXT = {
    "pending": "Pending",
    "completed": "Completed",
    "missed": "Missed",
    "skipped": "Skipped",
}


def _most_recent_first(occurrences: Sequence[ScheduleOccurrence]) -> List[ScheduleOccurrence]:
    return sorted(occurrences, key=lambda o: to_utc(o.scheduled_at), reverse=True)


def calculate_completion_rate(occurrences: Sequence[ScheduleOccurrence]) -> int:
    """Completed share of completed+missed; skipped and pending are ignored."""
    evaluated = [o for o in occurrences if o.status in ("completed", "missed")]
    if not evaluated:
        return 0
    completed = sum(1 for o in evaluated if o.status == "completed")
    return round_half_up(completed / len(evaluated) * 100)


def count_recent_by_status(
    occurrences: Sequence[ScheduleOccurrence], status: OccurrenceStatus, count: int = 7
) -> int:
    recent = _most_recent_first(occurrences)[:count]
    return sum(1 for o in recent if o.status == status)


def calculate_consistency_run(occurrences: Sequence[ScheduleOccurrence]) -> int:
    """Consecutive completed from the latest; skipped is transparent, missed breaks."""
    run = 0
    for occ in _most_recent_first(occurrences):
        if occ.status == "pending" or occ.status == "skipped":
            continue
        if occ.status != "completed":
            break
        run += 1
    return run


def calculate_schedule_stats(occurrences: Sequence[ScheduleOccurrence]) -> ScheduleStats:
    evaluated = [o for o in occurrences if o.status != "pending"]
    return ScheduleStats(
        completion_rate=calculate_completion_rate(occurrences),
        completed_last_7=count_recent_by_status(occurrences, "completed", 7),
        missed_last_7=count_recent_by_status(occurrences, "missed", 7),
        skipped_last_7=count_recent_by_status(occurrences, "skipped", 7),
        consistency_run=calculate_consistency_run(occurrences),
        total_occurrences=len(evaluated),
        total_completed=sum(1 for o in evaluated if o.status == "completed"),
        total_missed=sum(1 for o in evaluated if o.status == "missed"),
    )


def format_completion_rate(rate: int) -> str:
    return f"{rate}%"


def get_status_display_text(status: OccurrenceStatus) -> str:
    return _STATUS_TEXT[status]
