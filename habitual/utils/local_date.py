"""
Timezone-aware local date helpers.

"Today" and every date boundary are resolved in the user's IANA timezone,
never in UTC and never in the host's timezone. Instants handed in without
tzinfo are treated as UTC, which is how they come back from the database.
"""
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

LOCAL_DATE_FORMAT = "%Y-%m-%d"
_LOCAL_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class InvalidTimezoneError(ValueError):
    """Raised for unknown or malformed IANA timezone identifiers."""


def get_zone(tz_name: str) -> ZoneInfo:
    """Resolve an IANA timezone name. Never falls back to UTC."""
    if not tz_name or not isinstance(tz_name, str):
        raise InvalidTimezoneError(f"Invalid timezone: {tz_name!r}")
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezoneError(f"Invalid timezone: {tz_name!r}") from e


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(instant: datetime) -> datetime:
    """Normalize an instant to an aware UTC datetime (naive means UTC)."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_local(instant: datetime, tz_name: str) -> datetime:
    return to_utc(instant).astimezone(get_zone(tz_name))


def local_date_of(instant: datetime, tz_name: str) -> date:
    """Calendar date the instant falls on in the given timezone."""
    return to_local(instant, tz_name).date()


def format_local_date(d: date) -> str:
    return d.strftime(LOCAL_DATE_FORMAT)


def parse_date_string(date_string: str) -> date:
    """Parse a strict YYYY-MM-DD string."""
    if not isinstance(date_string, str) or not _LOCAL_DATE_RE.match(date_string):
        raise ValueError(f"Expected a YYYY-MM-DD date string, got {date_string!r}")
    return date.fromisoformat(date_string)


def start_of_local_day(d: date, tz_name: str) -> datetime:
    """
    Instant at which the local calendar day begins, as an aware datetime in
    the timezone. Round-tripping through UTC resolves midnights that fall in
    a DST gap to the first wall-clock time that exists.
    """
    zone = get_zone(tz_name)
    naive_midnight = datetime.combine(d, time.min).replace(tzinfo=zone)
    return naive_midnight.astimezone(timezone.utc).astimezone(zone)


def get_local_date_string(instant: datetime, tz_name: str) -> str:
    """YYYY-MM-DD string for an instant in a specific timezone."""
    return format_local_date(local_date_of(instant, tz_name))


def get_today_local_date_string(tz_name: str, now: Optional[datetime] = None) -> str:
    return get_local_date_string(now or utc_now(), tz_name)


def get_start_of_today(tz_name: str, now: Optional[datetime] = None) -> datetime:
    today = local_date_of(now or utc_now(), tz_name)
    return start_of_local_day(today, tz_name)


def get_days_ago_local_date_string(days_ago: int, tz_name: str, now: Optional[datetime] = None) -> str:
    today = local_date_of(now or utc_now(), tz_name)
    return format_local_date(today - timedelta(days=days_ago))


def get_days_from_now_local_date_string(days_from_now: int, tz_name: str, now: Optional[datetime] = None) -> str:
    today = local_date_of(now or utc_now(), tz_name)
    return format_local_date(today + timedelta(days=days_from_now))


def get_yesterday_local_date_string(tz_name: str, now: Optional[datetime] = None) -> str:
    return get_days_ago_local_date_string(1, tz_name, now=now)


def is_today(date_string: str, tz_name: str, now: Optional[datetime] = None) -> bool:
    return date_string == get_today_local_date_string(tz_name, now=now)


def is_yesterday(date_string: str, tz_name: str, now: Optional[datetime] = None) -> bool:
    return date_string == get_yesterday_local_date_string(tz_name, now=now)


def parse_local_date(date_string: str, tz_name: str) -> datetime:
    """Start-of-day instant of a YYYY-MM-DD string in the timezone."""
    return start_of_local_day(parse_date_string(date_string), tz_name)


def get_last_n_days(n: int, tz_name: str, now: Optional[datetime] = None) -> List[str]:
    """Date strings for the last n days, today first."""
    today = local_date_of(now or utc_now(), tz_name)
    return [format_local_date(today - timedelta(days=i)) for i in range(n)]
