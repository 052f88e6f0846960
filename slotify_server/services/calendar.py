# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Business calendar: one canonical day representation and timezone-aware slot instants.

Reservation days are stored and compared as ``datetime.date`` values (the
business calendar day). Every value entering the booking core goes through
``to_business_day`` so there is a single day-key strategy.
"""

import re
from collections.abc import Callable
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from slotify_server.config import settings

HHMM_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
DAY_KEY_FORMAT = "%Y-%m-%d"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@lru_cache
def business_tz(name: str | None = None) -> ZoneInfo:
    return ZoneInfo(name or settings.business_timezone)


def as_utc(value: datetime) -> datetime:
    """Aware UTC datetime. Naive values (SQLite drops offsets) are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_key(day: date) -> str:
    return day.strftime(DAY_KEY_FORMAT)


def parse_day_key(text: str) -> date:
    return datetime.strptime(text.strip(), DAY_KEY_FORMAT).date()


def to_business_day(value: date | datetime | str, tz: ZoneInfo | None = None) -> date:
    """Resolve a requested day to the business calendar day.

    Naive datetimes are business wall-clock time and keep their own date,
    whatever the time of day. Aware datetimes are read on the business clock,
    so the business midnight serialized in UTC (``2024-06-04T22:00Z`` for
    Paris) still means 2024-06-05, and so does any hour of that Paris day.
    """
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return parse_day_key(text)
        value = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz or business_tz())
        return value.date()
    return value


def day_of_week(day: date) -> int:
    """0 = Sunday, 1 = Monday, ..., 6 = Saturday."""
    return day.isoweekday() % 7


def is_valid_hhmm(text: str) -> bool:
    return bool(HHMM_RE.match(text))


def parse_hhmm(text: str) -> time:
    match = HHMM_RE.match(text)
    if not match:
        raise ValueError(f"Invalid time {text!r}, expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def hhmm_to_minutes(text: str) -> int:
    t = parse_hhmm(text)
    return t.hour * 60 + t.minute


def minutes_to_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def slot_start_at(day: date, start_time: str, tz: ZoneInfo | None = None) -> datetime:
    """Instant the slot starts on ``day``, in the business timezone."""
    return datetime.combine(day, parse_hhmm(start_time), tzinfo=tz or business_tz())


def can_cancel(
    day: date,
    start_time: str,
    now: datetime | None = None,
    tz: ZoneInfo | None = None,
) -> bool:
    """True iff the slot starts at least the cancellation window (24h) after now."""
    now = as_utc(now or utc_now())
    until_start = slot_start_at(day, start_time, tz) - now
    return until_start >= timedelta(hours=settings.cancellation_window_hours)


def business_today(now: datetime, tz: ZoneInfo | None = None) -> date:
    return as_utc(now).astimezone(tz or business_tz()).date()


def week_days(week_start: date) -> list[date]:
    return [week_start + timedelta(days=i) for i in range(7)]


def get_clock() -> Clock:
    """Dependency: source of "now" for request handlers."""
    return utc_now
