import pytest
from datetime import date, datetime, timezone

from habitual.utils.local_date import (
    InvalidTimezoneError,
    get_days_ago_local_date_string,
    get_days_from_now_local_date_string,
    get_last_n_days,
    get_local_date_string,
    get_start_of_today,
    get_today_local_date_string,
    get_yesterday_local_date_string,
    is_today,
    is_yesterday,
    parse_date_string,
    parse_local_date,
    start_of_local_day,
    to_utc,
)

UTC = timezone.utc


def test_local_date_uses_the_given_timezone_not_utc():
    # 03:30 UTC is still the previous evening in New York
    instant = datetime(2024, 3, 10, 3, 30, tzinfo=UTC)
    assert get_local_date_string(instant, "America/New_York") == "2024-03-09"
    assert get_local_date_string(instant, "UTC") == "2024-03-10"
    assert get_local_date_string(datetime(2024, 1, 1, 16, 0, tzinfo=UTC), "Asia/Tokyo") == "2024-01-02"


@pytest.mark.parametrize("tz_name", ["Not/AZone", "", "Mars/Olympus_Mons"])
def test_invalid_timezone_raises(tz_name):
    with pytest.raises(InvalidTimezoneError):
        get_today_local_date_string(tz_name)


def test_invalid_timezone_is_a_value_error():
    with pytest.raises(ValueError):
        get_local_date_string(datetime(2024, 1, 1, tzinfo=UTC), "Nowhere/Special")


def test_naive_instants_are_treated_as_utc():
    naive = datetime(2024, 5, 1, 12, 0)
    assert to_utc(naive) == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    assert get_local_date_string(naive, "UTC") == "2024-05-01"


def test_start_of_today_is_local_midnight():
    now = datetime(2024, 3, 10, 12, 0, tzinfo=UTC)
    start = get_start_of_today("America/New_York", now=now)
    # DST begins later that day; midnight is still EST
    assert to_utc(start) == datetime(2024, 3, 10, 5, 0, tzinfo=UTC)
    assert start.date() == date(2024, 3, 10)


def test_midnight_inside_dst_gap_resolves_to_first_existing_time():
    # Sao Paulo skipped from 00:00 to 01:00 on 2018-11-04
    start = start_of_local_day(date(2018, 11, 4), "America/Sao_Paulo")
    assert start.date() == date(2018, 11, 4)
    assert (start.hour, start.minute) == (1, 0)
    assert to_utc(start) == datetime(2018, 11, 4, 3, 0, tzinfo=UTC)


def test_relative_day_strings_cross_month_and_leap_day():
    now = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
    assert get_days_ago_local_date_string(7, "UTC", now=now) == "2024-02-23"
    assert get_yesterday_local_date_string("UTC", now=now) == "2024-02-29"
    assert get_days_from_now_local_date_string(1, "UTC", now=datetime(2024, 2, 28, 12, tzinfo=UTC)) == "2024-02-29"


def test_is_today_and_is_yesterday():
    now = datetime(2024, 6, 15, 2, 0, tzinfo=UTC)
    # Still June 14 in Los Angeles
    assert is_today("2024-06-14", "America/Los_Angeles", now=now)
    assert is_yesterday("2024-06-13", "America/Los_Angeles", now=now)
    assert not is_today("2024-06-15", "America/Los_Angeles", now=now)
    assert is_today("2024-06-15", "UTC", now=now)


def test_parse_local_date_returns_start_of_day_instant():
    start = parse_local_date("2024-07-04", "America/New_York")
    assert to_utc(start) == datetime(2024, 7, 4, 4, 0, tzinfo=UTC)


@pytest.mark.parametrize("bad", ["2024-7-4", "20240704", "2024-02-30", "yesterday", ""])
def test_parse_date_string_rejects_malformed_input(bad):
    with pytest.raises(ValueError):
        parse_date_string(bad)


def test_last_n_days_today_first():
    now = datetime(2024, 3, 1, 0, 30, tzinfo=UTC)
    assert get_last_n_days(3, "UTC", now=now) == ["2024-03-01", "2024-02-29", "2024-02-28"]
    assert get_last_n_days(0, "UTC", now=now) == []
