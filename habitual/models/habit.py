from typing import Optional
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field, UniqueConstraint
from sqlalchemy import Column, DateTime, JSON


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Habit(SQLModel, table=True):
    """
    User habits: build (reach a target), quota (stay under a limit),
    schedule (expected occurrences) and avoid.
    """
    __tablename__ = "habits"

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: int = Field(index=True)

    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)

    # build, quota, schedule, avoid
    kind: str = Field(default="build", max_length=20, index=True)
    # count, minutes, pages, steps, reps, sessions, currency, grams, units or custom text
    unit: str = Field(default="count", max_length=40)
    timezone: Optional[str] = Field(default=None, max_length=64)

    # Accounting window for quota/build habits: day, week, month
    period: Optional[str] = Field(default=None, max_length=10)

    # Quota
    quota_amount: Optional[float] = None
    near_threshold_percent: Optional[int] = None
    allow_soft_over: bool = Field(default=False)

    # Build
    build_target: Optional[float] = None

    # Schedule
    schedule_pattern: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))

    active: bool = Field(default=True, index=True)
    sort_order: int = Field(default=0)
    archived_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    deleted_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True, index=True)
    )

    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    def touch(self) -> None:
        self.updated_at = _utcnow()


class HabitPeriod(SQLModel, table=True):
    """
    Cached totals for one accounting window of a quota or build habit.
    Status is under/near/over for quota, incomplete/complete for build.
    """
    __tablename__ = "habit_periods"
    __table_args__ = (UniqueConstraint("habit_id", "local_period_start", name="uq_habit_periods_habit_start"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    habit_id: int = Field(index=True, foreign_key="habits.id")

    local_period_start: str = Field(max_length=10, index=True)
    local_period_end: str = Field(max_length=10)
    status: str = Field(max_length=20)
    total_amount: float = Field(default=0)

    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class HabitUsageEvent(SQLModel, table=True):
    """
    A single logged amount: usage for quota habits, progress for build habits.
    """
    __tablename__ = "habit_usage_events"

    id: Optional[int] = Field(default=None, primary_key=True)
    habit_id: int = Field(index=True, foreign_key="habits.id")

    occurred_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    local_date: str = Field(max_length=10)
    local_period_start: str = Field(max_length=10, index=True)
    local_period_end: str = Field(max_length=10)
    amount: float
    note: Optional[str] = Field(default=None, max_length=500)

    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class ScheduleOccurrenceRecord(SQLModel, table=True):
    """
    A recorded outcome for one slot of a schedule habit. Only slots the user
    acted on are stored; the rest are generated on demand.
    """
    __tablename__ = "habit_schedule_occurrences"
    __table_args__ = (UniqueConstraint("habit_id", "scheduled_at", name="uq_habit_occurrences_habit_slot"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    habit_id: int = Field(index=True, foreign_key="habits.id")

    scheduled_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    local_date: str = Field(max_length=10, index=True)
    status: str = Field(default="pending", max_length=20)
    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    note: Optional[str] = Field(default=None, max_length=500)

    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class HabitSlip(SQLModel, table=True):
    """A logged slip of an avoid habit."""
    __tablename__ = "habit_slips"

    id: Optional[int] = Field(default=None, primary_key=True)
    habit_id: int = Field(index=True, foreign_key="habits.id")

    occurred_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    local_date: str = Field(max_length=10, index=True)
    # 1 (minor) to 3 (major)
    severity: Optional[int] = None
    note: Optional[str] = Field(default=None, max_length=500)

    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class HabitDay(SQLModel, table=True):
    """
    Day state of an avoid habit: slipped or excluded. Clean days have no row.
    """
    __tablename__ = "habit_days"
    __table_args__ = (UniqueConstraint("habit_id", "local_date", name="uq_habit_days_habit_date"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    habit_id: int = Field(index=True, foreign_key="habits.id")

    local_date: str = Field(max_length=10, index=True)
    status: str = Field(max_length=20)

    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
