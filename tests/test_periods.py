import random

import pytest
from datetime import datetime, timedelta, timezone

from habitual.utils.local_date import InvalidTimezoneError, to_utc
from habitual.utils.periods import (
    format_period_remaining,
    get_current_period,
    get_current_period_label,
    get_period_for_date,
    get_period_label,
    get_previous_period,
    is_same_period,
)

UTC = timezone.utc
TIMEZONES = ["UTC", "America/New_York", "Europe/London", "Asia/Kolkata", "Australia/Sydney", "Pacific/Auckland"]


def test_week_containing_dst_start_runs_sunday_to_saturday():
    bounds = get_period_for_date(datetime(2024, 3, 10, 12, 0, tzinfo=UTC), "America/New_York", "week")
    assert bounds.local_start_date == "2024-03-10"
    assert bounds.local_end_date == "2024-03-16"
    assert to_utc(bounds.start) == datetime(2024, 3, 10, 5, 0, tzinfo=UTC)
    # Next Sunday's midnight is already EDT
    assert to_utc(bounds.end) == datetime(2024, 3, 17, 3, 59, 59, 999999, tzinfo=UTC)


def test_midweek_instant_maps_back_to_preceding_sunday():
    bounds = get_period_for_date(datetime(2024, 3, 13, 12, 0, tzinfo=UTC), "America/New_York", "week")
    assert (bounds.local_start_date, bounds.local_end_date) == ("2024-03-10", "2024-03-16")


def test_day_period_on_fall_back_lasts_25_hours():
    bounds = get_period_for_date(datetime(2024, 11, 3, 15, 0, tzinfo=UTC), "America/New_York", "day")
    assert bounds.local_start_date == bounds.local_end_date == "2024-11-03"
    assert to_utc(bounds.end) - to_utc(bounds.start) == timedelta(hours=25) - timedelta(microseconds=1)


def test_month_period_uses_local_calendar():
    # Already March in UTC, still leap day in New York
    bounds = get_period_for_date(datetime(2024, 3, 1, 2, 0, tzinfo=UTC), "America/New_York", "month")
    assert (bounds.local_start_date, bounds.local_end_date) == ("2024-02-01", "2024-02-29")

    bounds = get_period_for_date(datetime(2024, 12, 31, 23, 0, tzinfo=UTC), "UTC", "month")
    assert (bounds.local_start_date, bounds.local_end_date) == ("2024-12-01", "2024-12-31")


def test_unknown_period_type_raises():
    with pytest.raises(ValueError):
        get_period_for_date(datetime(2024, 1, 1, tzinfo=UTC), "UTC", "year")


def test_invalid_timezone_raises():
    with pytest.raises(InvalidTimezoneError):
        get_current_period("Bogus/Zone", "day")


def test_previous_period():
    now = datetime(2024, 3, 13, 12, 0, tzinfo=UTC)
    prev_week = get_previous_period("America/New_York", "week", now=now)
    assert (prev_week.local_start_date, prev_week.local_end_date) == ("2024-03-03", "2024-03-09")

    prev_month = get_previous_period("UTC", "month", now=datetime(2024, 1, 15, tzinfo=UTC))
    assert (prev_month.local_start_date, prev_month.local_end_date) == ("2023-12-01", "2023-12-31")


def test_is_same_period():
    a = datetime(2024, 3, 10, 5, 30, tzinfo=UTC)
    b = datetime(2024, 3, 16, 23, 0, tzinfo=UTC)
    assert is_same_period(a, b, "America/New_York", "week")
    assert not is_same_period(a, b, "America/New_York", "day")


def test_period_labels():
    assert get_period_label("2025-03-03", "day") == "Mon, Mar 3"
    assert get_period_label("2025-03-02", "week") == "Week of Mar 2"
    assert get_period_label("2025-03-01", "month") == "March 2025"
    assert get_current_period_label("UTC", "month", now=datetime(2025, 3, 18, tzinfo=UTC)) == "March 2025"


def test_format_period_remaining():
    now = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    assert format_period_remaining(now + timedelta(days=2, hours=5), "UTC", now=now) == "2 days left"
    assert format_period_remaining(now + timedelta(days=1), "UTC", now=now) == "1 day left"
    assert format_period_remaining(now + timedelta(hours=3, minutes=59), "UTC", now=now) == "3 hours left"
    assert format_period_remaining(now + timedelta(hours=1), "UTC", now=now) == "1 hour left"
    assert format_period_remaining(now + timedelta(minutes=59), "UTC", now=now) == "59 minutes left"
    assert format_period_remaining(now, "UTC", now=now) == "Period ended"
    assert format_period_remaining(now - timedelta(hours=2), "UTC", now=now) == "Period ended"


@pytest.mark.parametrize("seed", range(5))
def test_bounds_contain_instant_and_are_contiguous(seed):
    rng = random.Random(seed)
    base = datetime(2020, 1, 1, tzinfo=UTC)
    for _ in range(60):
        instant = base + timedelta(seconds=rng.randrange(0, 6 * 365 * 24 * 3600))
        tz_name = rng.choice(TIMEZONES)
        period = rng.choice(["day", "week", "month"])

        bounds = get_period_for_date(instant, tz_name, period)
        assert to_utc(bounds.start) <= instant <= to_utc(bounds.end)
        assert bounds.local_start_date <= bounds.local_end_date

        # The instant right after the end opens the next period
        following = get_period_for_date(to_utc(bounds.end) + timedelta(microseconds=1), tz_name, period)
        assert to_utc(following.start) == to_utc(bounds.end) + timedelta(microseconds=1)
        assert following.local_start_date > bounds.local_end_date
