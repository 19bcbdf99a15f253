import random

import pytest
from datetime import date, datetime, timedelta, timezone
from pydantic import ValidationError

from habitual.utils.local_date import to_utc
from habitual.utils.schedule import (
    DAY_NAMES,
    ScheduleOccurrence,
    SchedulePattern,
    build_occurrences,
    create_scheduled_time,
    format_schedule_pattern,
    format_scheduled_time,
    generate_occurrences,
    get_next_occurrence,
    get_today_occurrences,
    is_day_in_pattern,
    is_occurrence_past,
    is_scheduled_slot,
    reconcile_occurrences,
)

UTC = timezone.utc
NY = "America/New_York"
DAILY_8AM = SchedulePattern(type="daily", time="08:00")


def test_pattern_normalizes_time_and_days():
    pattern = SchedulePattern(type="weekly", time="7:05", days=["Wed", "mon", "mon"])
    assert pattern.time == "07:05"
    assert pattern.days == ("mon", "wed")


def test_pattern_from_stored_json():
    pattern = SchedulePattern.model_validate(
        {"type": "custom", "time": "21:00", "days": ["sat", "sun"], "starts_on": "2024-01-01", "ends_on": None}
    )
    assert pattern.days == ("sun", "sat")
    assert pattern.starts_on == date(2024, 1, 1)


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "weekly", "time": "08:00"},
        {"type": "custom", "time": "08:00", "days": []},
        {"type": "daily", "time": "25:00"},
        {"type": "daily", "time": "8am"},
        {"type": "weekly", "time": "08:00", "days": ["funday"]},
        {"type": "daily", "time": "08:00", "starts_on": "2024-03-10", "ends_on": "2024-03-01"},
        {"type": "hourly", "time": "08:00"},
    ],
)
def test_invalid_patterns_rejected(payload):
    with pytest.raises(ValidationError):
        SchedulePattern.model_validate(payload)


def test_generate_marks_past_slots_missed_and_future_pending():
    now = datetime(2024, 3, 10, 12, 30, tzinfo=UTC)
    occurrences = generate_occurrences(DAILY_8AM, NY, date(2024, 3, 9), date(2024, 3, 11), now=now)

    assert [o.local_date for o in occurrences] == ["2024-03-09", "2024-03-10", "2024-03-11"]
    # 8 AM is EST before the DST switch and EDT after it
    assert [to_utc(o.scheduled_at) for o in occurrences] == [
        datetime(2024, 3, 9, 13, 0, tzinfo=UTC),
        datetime(2024, 3, 10, 12, 0, tzinfo=UTC),
        datetime(2024, 3, 11, 12, 0, tzinfo=UTC),
    ]
    assert [o.status for o in occurrences] == ["missed", "missed", "pending"]


def test_slot_at_exactly_now_is_pending():
    now = datetime(2024, 3, 11, 12, 0, tzinfo=UTC)
    occurrences = generate_occurrences(DAILY_8AM, NY, date(2024, 3, 11), date(2024, 3, 11), now=now)
    assert occurrences[0].status == "pending"


def test_weekly_pattern_only_on_listed_days():
    pattern = SchedulePattern(type="weekly", time="19:30", days=["mon", "wed"])
    occurrences = generate_occurrences(pattern, "UTC", date(2024, 3, 10), date(2024, 3, 16), now=datetime(2024, 1, 1, tzinfo=UTC))
    assert [o.local_date for o in occurrences] == ["2024-03-11", "2024-03-13"]
    assert all(o.status == "pending" for o in occurrences)


def test_active_window_limits_generation():
    pattern = SchedulePattern(type="daily", time="08:00", starts_on=date(2024, 3, 10), ends_on=date(2024, 3, 11))
    occurrences = generate_occurrences(pattern, "UTC", date(2024, 3, 8), date(2024, 3, 14))
    assert [o.local_date for o in occurrences] == ["2024-03-10", "2024-03-11"]
    assert not is_day_in_pattern(date(2024, 3, 12), pattern)


def test_range_bounds_accept_instants():
    # 02:00 UTC on the 12th is still the 11th in New York
    occurrences = generate_occurrences(
        DAILY_8AM, NY, datetime(2024, 3, 10, 12, 0, tzinfo=UTC), datetime(2024, 3, 12, 2, 0, tzinfo=UTC)
    )
    assert [o.local_date for o in occurrences] == ["2024-03-10", "2024-03-11"]


def test_recorded_outcome_replaces_generated_slot():
    now = datetime(2024, 3, 12, 0, 0, tzinfo=UTC)
    slot = datetime(2024, 3, 10, 12, 0, tzinfo=UTC)
    recorded = [ScheduleOccurrence(scheduled_at=slot, local_date="2024-03-10", status="completed")]

    occurrences = build_occurrences(DAILY_8AM, NY, date(2024, 3, 9), date(2024, 3, 11), recorded=recorded, now=now)

    at_slot = [o for o in occurrences if to_utc(o.scheduled_at) == slot]
    assert len(at_slot) == 1
    assert at_slot[0].status == "completed"
    assert len(occurrences) == 3


def test_recorded_outcomes_outside_window_are_ignored_and_orphans_kept():
    orphan = ScheduleOccurrence(
        scheduled_at=datetime(2024, 3, 10, 15, 0, tzinfo=UTC), local_date="2024-03-10", status="skipped"
    )
    outside = ScheduleOccurrence(
        scheduled_at=datetime(2024, 3, 20, 12, 0, tzinfo=UTC), local_date="2024-03-20", status="completed"
    )
    occurrences = build_occurrences(
        DAILY_8AM, NY, date(2024, 3, 10), date(2024, 3, 10), recorded=[outside, orphan],
        now=datetime(2024, 3, 11, tzinfo=UTC),
    )
    assert [(o.local_date, o.status) for o in occurrences] == [("2024-03-10", "missed"), ("2024-03-10", "skipped")]


def test_reconcile_is_sorted_by_instant():
    a = ScheduleOccurrence(scheduled_at=datetime(2024, 1, 2, tzinfo=UTC), local_date="2024-01-02", status="pending")
    b = ScheduleOccurrence(scheduled_at=datetime(2024, 1, 1, tzinfo=UTC), local_date="2024-01-01", status="completed")
    assert [o.local_date for o in reconcile_occurrences([a], [b])] == ["2024-01-01", "2024-01-02"]


def test_scheduled_time_in_dst_gap_and_overlap():
    # 02:30 does not exist on 2024-03-10 in New York
    assert create_scheduled_time(date(2024, 3, 10), "02:30", NY) == datetime(2024, 3, 10, 7, 30, tzinfo=UTC)
    # 01:30 happens twice on 2024-11-03; the first (EDT) one is used
    assert create_scheduled_time(date(2024, 11, 3), "01:30", NY) == datetime(2024, 11, 3, 5, 30, tzinfo=UTC)


def test_is_scheduled_slot():
    slot = datetime(2024, 3, 10, 12, 0, tzinfo=UTC)
    assert is_scheduled_slot(DAILY_8AM, NY, slot)
    assert not is_scheduled_slot(DAILY_8AM, NY, slot + timedelta(minutes=1))

    weekly = SchedulePattern(type="weekly", time="08:00", days=["mon"])
    assert not is_scheduled_slot(weekly, NY, slot)


def test_next_occurrence():
    pattern = SchedulePattern(type="daily", time="08:00")
    assert get_next_occurrence(pattern, "UTC", now=datetime(2024, 5, 1, 7, 0, tzinfo=UTC)) == datetime(
        2024, 5, 1, 8, 0, tzinfo=UTC
    )
    assert get_next_occurrence(pattern, "UTC", now=datetime(2024, 5, 1, 8, 0, tzinfo=UTC)) == datetime(
        2024, 5, 2, 8, 0, tzinfo=UTC
    )

    ended = SchedulePattern(type="daily", time="08:00", ends_on=date(2024, 4, 30))
    assert get_next_occurrence(ended, "UTC", now=datetime(2024, 5, 1, tzinfo=UTC)) is None


def test_today_occurrences_and_past_check():
    now = datetime(2024, 5, 1, 9, 0, tzinfo=UTC)
    today = get_today_occurrences(DAILY_8AM, "UTC", now=now)
    assert len(today) == 1
    assert today[0].status == "missed"
    assert is_occurrence_past(today[0].scheduled_at, now=now)
    assert not is_occurrence_past(now + timedelta(seconds=1), now=now)


def test_formatting_uses_local_time():
    assert format_scheduled_time(datetime(2024, 3, 10, 12, 0, tzinfo=UTC), NY) == "8:00 AM"
    assert format_scheduled_time(datetime(2024, 3, 10, 23, 5, tzinfo=UTC), NY) == "7:05 PM"
    assert format_schedule_pattern(DAILY_8AM) == "Daily at 8:00 AM"
    assert format_schedule_pattern(SchedulePattern(type="weekly", time="19:30", days=["wed", "mon"])) == "Mon, Wed at 7:30 PM"
    assert format_schedule_pattern(SchedulePattern(type="custom", time="00:15", days=list(DAY_NAMES))) == "Daily at 12:15 AM"


@pytest.mark.parametrize("seed", range(5))
def test_generated_slots_are_ordered_and_valid(seed):
    rng = random.Random(seed)
    zones = ["UTC", NY, "Europe/Berlin", "Australia/Lord_Howe", "Asia/Kathmandu"]
    for _ in range(20):
        tz_name = rng.choice(zones)
        days = rng.sample(DAY_NAMES, rng.randrange(1, 8))
        pattern = SchedulePattern(
            type=rng.choice(["daily", "weekly", "custom"]),
            time=f"{rng.randrange(24):02d}:{rng.randrange(60):02d}",
            days=days,
        )
        first = date(2023, 1, 1) + timedelta(days=rng.randrange(700))
        last = first + timedelta(days=rng.randrange(40))
        now = datetime(2024, 6, 1, tzinfo=UTC)

        occurrences = generate_occurrences(pattern, tz_name, first, last, now=now)
        instants = [to_utc(o.scheduled_at) for o in occurrences]
        assert instants == sorted(instants)
        assert len(set(instants)) == len(instants)
        for occ in occurrences:
            assert is_scheduled_slot(pattern, tz_name, occ.scheduled_at)
            assert first.isoformat() <= occ.local_date <= last.isoformat()
            assert occ.status == ("missed" if to_utc(occ.scheduled_at) < now else "pending")


def test_days_sorted_in_week_order_whatever_the_input_order():
    pattern = SchedulePattern(type="custom", time="08:00", days=[" SAT", "tue", "Sun", "tue", "thu"])
    assert pattern.days == ("sun", "tue", "thu", "sat")


def test_unknown_day_is_rejected_not_sorted_last():
    with pytest.raises(ValidationError):
        SchedulePattern(type="custom", time="08:00", days=["mon", "someday"])
