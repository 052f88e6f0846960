# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Cancellation window, cancel by code and cancel through a magic link."""

from datetime import date, timedelta
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import select

from conftest import ALICE, BOB, NOW, WEDNESDAY
from slotify_server.models import MagicLink, Reservation
from slotify_server.services.booking import Booked, book
from slotify_server.services.calendar import can_cancel
from slotify_server.services.cancellation import cancel_by_code, cancel_by_token_and_id
from slotify_server.services.results import Failure

pytestmark = pytest.mark.anyio

UTC = ZoneInfo("UTC")
TOKEN = "a" * 64


@pytest.mark.parametrize(
    "day, start_time, expected",
    [
        (date(2024, 6, 5), "08:00", True),  # 48h ahead
        (date(2024, 6, 4), "09:00", True),  # 25h
        (date(2024, 6, 4), "08:00", True),  # exactly 24h
        (date(2024, 6, 4), "07:00", False),  # 23h
        (date(2024, 6, 3), "20:00", False),  # 12h
        (date(2024, 6, 3), "10:00", False),  # starts in 2h
        (date(2024, 6, 3), "06:00", False),  # started 2h ago
    ],
)
def test_can_cancel_window(day, start_time, expected):
    assert can_cancel(day, start_time, NOW, tz=UTC) is expected


def test_one_second_short_of_window_is_refused():
    """23h59m59s before the start is inside the window."""
    assert can_cancel(date(2024, 6, 4), "08:00", NOW + timedelta(seconds=1), tz=UTC) is False
    assert can_cancel(date(2024, 6, 4), "08:00", NOW - timedelta(seconds=1), tz=UTC) is True


def test_can_cancel_uses_business_timezone():
    """Wednesday 10:00 in Paris is 08:00 UTC, 48h after NOW."""
    assert can_cancel(WEDNESDAY, "10:00", NOW)
    assert not can_cancel(WEDNESDAY, "10:00", NOW + timedelta(hours=24, minutes=1))


async def _booked(session_maker, email, slot_id, day=WEDNESDAY) -> Booked:
    async with session_maker() as db:
        result = await book(db, email, slot_id, day, now=NOW)
    assert isinstance(result, Booked)
    return result


async def _cancelled_at(session_maker, reservation_id):
    async with session_maker() as db:
        value = await db.scalar(select(Reservation.cancelled_at).where(Reservation.id == reservation_id))
        await db.commit()
        return value


async def test_cancel_by_code(session_maker, allowed, make_slot):
    slot_id = await make_slot()
    booked = await _booked(session_maker, ALICE, slot_id)
    async with session_maker() as db:
        assert await cancel_by_code(db, booked.cancellation_code, now=NOW) is None
    assert await _cancelled_at(session_maker, booked.reservation_id) is not None


async def test_code_is_case_insensitive(session_maker, allowed, make_slot):
    slot_id = await make_slot()
    booked = await _booked(session_maker, ALICE, slot_id)
    async with session_maker() as db:
        assert await cancel_by_code(db, f" {booked.cancellation_code.lower()} ", now=NOW) is None


async def test_cancel_twice_keeps_first_timestamp(session_maker, allowed, make_slot):
    """Second cancel is refused and cancelled_at does not move."""
    slot_id = await make_slot()
    booked = await _booked(session_maker, ALICE, slot_id)
    async with session_maker() as db:
        assert await cancel_by_code(db, booked.cancellation_code, now=NOW) is None
    first = await _cancelled_at(session_maker, booked.reservation_id)

    async with session_maker() as db:
        again = await cancel_by_code(db, booked.cancellation_code, now=NOW + timedelta(minutes=5))
    assert again.kind is Failure.ALREADY_CANCELLED
    assert await _cancelled_at(session_maker, booked.reservation_id) == first


async def test_unknown_code(session_maker, allowed):
    async with session_maker() as db:
        result = await cancel_by_code(db, "ZZZZ9999", now=NOW)
    assert result.kind is Failure.CODE_NOT_FOUND


async def test_cancel_inside_window_refused(session_maker, allowed, make_slot):
    """A booking for tonight cannot be cancelled."""
    slot_id = await make_slot(day_of_week=1, start_time="20:00", end_time="21:00")
    booked = await _booked(session_maker, ALICE, slot_id, day=date(2024, 6, 3))
    async with session_maker() as db:
        result = await cancel_by_code(db, booked.cancellation_code, now=NOW)
    assert result.kind is Failure.CANCELLATION_WINDOW_CLOSED
    assert await _cancelled_at(session_maker, booked.reservation_id) is None


async def _add_link(session_maker, email=ALICE, token=TOKEN, expires_at=None):
    async with session_maker() as db:
        db.add(MagicLink(email=email, token=token, expires_at=expires_at or NOW + timedelta(hours=1)))
        await db.commit()


async def test_cancel_by_token(session_maker, allowed, make_slot):
    slot_id = await make_slot()
    booked = await _booked(session_maker, ALICE, slot_id)
    await _add_link(session_maker)
    async with session_maker() as db:
        assert await cancel_by_token_and_id(db, TOKEN, booked.reservation_id, now=NOW) is None
    assert await _cancelled_at(session_maker, booked.reservation_id) is not None


async def test_token_cannot_cancel_someone_else(session_maker, allowed, make_slot):
    """Another email's reservation and a missing one look the same."""
    slot_id = await make_slot()
    bobs = await _booked(session_maker, BOB, slot_id)
    await _add_link(session_maker)
    async with session_maker() as db:
        other = await cancel_by_token_and_id(db, TOKEN, bobs.reservation_id, now=NOW)
    async with session_maker() as db:
        missing = await cancel_by_token_and_id(db, TOKEN, 424242, now=NOW)
    assert other.kind is Failure.NOT_OWNER_OR_NOT_FOUND
    assert missing.kind is Failure.NOT_OWNER_OR_NOT_FOUND
    assert await _cancelled_at(session_maker, bobs.reservation_id) is None


async def test_expired_or_unknown_token(session_maker, allowed, make_slot):
    slot_id = await make_slot()
    booked = await _booked(session_maker, ALICE, slot_id)
    await _add_link(session_maker, expires_at=NOW - timedelta(seconds=1))
    async with session_maker() as db:
        expired = await cancel_by_token_and_id(db, TOKEN, booked.reservation_id, now=NOW)
    async with session_maker() as db:
        unknown = await cancel_by_token_and_id(db, "b" * 64, booked.reservation_id, now=NOW)
    assert expired.kind is Failure.SESSION_EXPIRED
    assert unknown.kind is Failure.SESSION_EXPIRED
