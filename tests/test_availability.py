# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Availability derived from active reservation counts."""

from datetime import date

import pytest

from conftest import ALICE, BOB, NOW, WEDNESDAY
from slotify_server.services.availability import (
    availability_key,
    pair_availability,
    remaining_capacity,
    week_availability,
)
from slotify_server.services.booking import book
from slotify_server.services.calendar import week_days
from slotify_server.services.cancellation import cancel_by_code
from slotify_server.services.catalog import update_slot

pytestmark = pytest.mark.anyio

THURSDAY = date(2024, 6, 6)


async def _book(session_maker, email, slot_id, day=WEDNESDAY):
    async with session_maker() as db:
        return await book(db, email, slot_id, day, now=NOW)


async def test_week_map_covers_active_slots_on_their_weekday(session_maker, allowed, make_slot):
    """Each active slot appears once per matching day; inactive slots never appear."""
    wednesday = await make_slot(max_capacity=2)
    thursday = await make_slot(day_of_week=4, max_capacity=3)
    inactive = await make_slot(start_time="14:00", end_time="15:00", is_active=False)
    await _book(session_maker, ALICE, wednesday)

    async with session_maker() as db:
        cells = await week_availability(db, week_days(date(2024, 6, 3)))

    assert cells == {
        availability_key(wednesday, WEDNESDAY): {"available": 1, "capacity": 2},
        availability_key(thursday, THURSDAY): {"available": 3, "capacity": 3},
    }
    assert availability_key(inactive, WEDNESDAY) not in cells


async def test_cancelled_reservation_frees_capacity(session_maker, allowed, make_slot):
    slot_id = await make_slot(max_capacity=1)
    booked = await _book(session_maker, ALICE, slot_id)
    async with session_maker() as db:
        assert await remaining_capacity(db, slot_id, WEDNESDAY) == 0
        assert await cancel_by_code(db, booked.cancellation_code, now=NOW) is None
    async with session_maker() as db:
        assert await remaining_capacity(db, slot_id, "2024-06-05") == 1
        await db.commit()


async def test_pairs_skip_unknown_slots(session_maker, allowed, make_slot):
    slot_id = await make_slot()
    async with session_maker() as db:
        cells = await pair_availability(db, [(slot_id, WEDNESDAY), (9999, WEDNESDAY)])
        assert await remaining_capacity(db, 9999, WEDNESDAY) == 0
        await db.commit()
    assert cells == {f"{slot_id}|2024-06-05": {"available": 2, "capacity": 2}}


async def test_lowered_capacity_reports_zero_available(session_maker, allowed, make_slot):
    """Capacity lowered below the active count: remaining goes negative, the map shows 0."""
    slot_id = await make_slot(max_capacity=2)
    await _book(session_maker, ALICE, slot_id)
    await _book(session_maker, BOB, slot_id)
    async with session_maker() as db:
        await update_slot(db, slot_id, max_capacity=1)
    async with session_maker() as db:
        assert await remaining_capacity(db, slot_id, WEDNESDAY) == -1
        cells = await week_availability(db, [WEDNESDAY])
        await db.commit()
    assert cells[availability_key(slot_id, WEDNESDAY)] == {"available": 0, "capacity": 1}
