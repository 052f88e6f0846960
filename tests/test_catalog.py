# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Admin catalog: slot creation, allow-list management and stats."""

import pytest
from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql

from conftest import ALICE, BOB, NOW, WEDNESDAY
from slotify_server.models import AllowedEmail, Reservation
from slotify_server.services import catalog
from slotify_server.services.booking import allowed_email_lookup, book
from slotify_server.services.cancellation import cancel_by_code

pytestmark = pytest.mark.anyio


def test_split_range_into_hour_blocks():
    assert catalog.split_range("09:30", "12:00") == [
        ("09:30", "10:00"),
        ("10:00", "11:00"),
        ("11:00", "12:00"),
    ]
    assert catalog.split_range("14:00", "15:00") == [("14:00", "15:00")]


@pytest.mark.parametrize(
    "start, end",
    [("10:00", "10:00"), ("11:00", "10:00"), ("09:15", "10:00"), ("9:00", "10:00"), ("10:00", "24:00")],
)
def test_split_range_rejects_bad_ranges(start, end):
    with pytest.raises(catalog.CatalogError):
        catalog.split_range(start, end)


async def test_create_slots(session_maker):
    async with session_maker() as db:
        slots = await catalog.create_slots(db, 3, "09:00", "12:00", 5)
    assert [(s.start_time, s.end_time) for s in slots] == [
        ("09:00", "10:00"),
        ("10:00", "11:00"),
        ("11:00", "12:00"),
    ]
    assert all(s.is_active and s.max_capacity == 5 for s in slots)


async def test_create_duplicate_slot_conflicts(session_maker):
    async with session_maker() as db:
        await catalog.create_slots(db, 3, "09:00", "10:00", 5)
    async with session_maker() as db:
        with pytest.raises(catalog.CatalogError) as exc_info:
            await catalog.create_slots(db, 3, "09:00", "11:00", 5)
        await db.rollback()
    assert exc_info.value.status_code == 409


@pytest.mark.parametrize("capacity", [0, 101])
async def test_capacity_bounds(session_maker, capacity):
    async with session_maker() as db:
        with pytest.raises(catalog.CatalogError):
            await catalog.create_slots(db, 3, "09:00", "10:00", capacity)


async def test_toggle_slot(session_maker, make_slot):
    slot_id = await make_slot()
    async with session_maker() as db:
        slot = await catalog.toggle_slot(db, slot_id)
    assert slot.is_active is False


async def test_add_email_normalizes_and_rejects_duplicates(session_maker):
    async with session_maker() as db:
        entry = await catalog.add_email(db, "  New.Student@Example.com ")
    assert entry.email == "new.student@example.com"
    async with session_maker() as db:
        with pytest.raises(catalog.CatalogError) as exc_info:
            await catalog.add_email(db, "new.student@example.com")
        await db.rollback()
    assert exc_info.value.status_code == 409


async def _email_id(session_maker, email) -> int:
    async with session_maker() as db:
        value = await db.scalar(select(AllowedEmail.id).where(AllowedEmail.email == email))
        await db.commit()
        return value


async def _reservations(session_maker) -> int:
    async with session_maker() as db:
        value = await db.scalar(select(func.count()).select_from(Reservation))
        await db.commit()
        return value


async def test_email_with_active_reservation_cannot_be_deleted(session_maker, allowed, make_slot):
    slot_id = await make_slot()
    async with session_maker() as db:
        booked = await book(db, ALICE, slot_id, WEDNESDAY, now=NOW)
    alice_id = await _email_id(session_maker, ALICE)

    async with session_maker() as db:
        with pytest.raises(catalog.CatalogError):
            await catalog.delete_email(db, alice_id)
        await db.rollback()

    async with session_maker() as db:
        await cancel_by_code(db, booked.cancellation_code, now=NOW)
    async with session_maker() as db:
        await catalog.delete_email(db, alice_id)
    assert await _email_id(session_maker, ALICE) is None
    # the cancelled history goes with the email
    assert await _reservations(session_maker) == 0


async def test_delete_slot_cascades(session_maker, allowed, make_slot):
    slot_id = await make_slot()
    async with session_maker() as db:
        await book(db, ALICE, slot_id, WEDNESDAY, now=NOW)
    async with session_maker() as db:
        await catalog.delete_slot(db, slot_id)
    assert await _reservations(session_maker) == 0
    async with session_maker() as db:
        with pytest.raises(catalog.CatalogError) as exc_info:
            await catalog.delete_slot(db, slot_id)
        await db.rollback()
    assert exc_info.value.status_code == 404


async def test_list_emails_and_stats(session_maker, allowed, make_slot):
    slot_id = await make_slot()
    async with session_maker() as db:
        booked = await book(db, ALICE, slot_id, WEDNESDAY, now=NOW)
    async with session_maker() as db:
        await book(db, BOB, slot_id, WEDNESDAY, now=NOW)
    async with session_maker() as db:
        await cancel_by_code(db, booked.cancellation_code, now=NOW)

    async with session_maker() as db:
        rows = await catalog.list_emails(db)
        stats = await catalog.get_stats(db, now=NOW)
        await db.commit()

    counts = {entry.email: (total, active) for entry, total, active in rows}
    assert counts[ALICE] == (1, 0)
    assert counts[BOB] == (1, 1)
    assert stats == {
        "emails_total": 3,
        "slots_active": 1,
        "reservations_active": 1,
        "reservations_cancelled": 1,
        "reservations_upcoming": 1,
    }


def test_allow_list_row_is_locked_on_postgresql():
    """Bookings share-lock the email row; removal takes it exclusively and waits for them."""
    shared = str(allowed_email_lookup(ALICE).compile(dialect=postgresql.dialect()))
    exclusive = str(catalog.allowed_email_for_removal(1).compile(dialect=postgresql.dialect()))
    assert shared.endswith("FOR SHARE")
    assert exclusive.endswith("FOR UPDATE")


async def test_delete_email_keeps_active_reservation(session_maker, allowed, make_slot):
    """The delete is conditional on there being no active reservation."""
    slot_id = await make_slot()
    alice_id = await _email_id(session_maker, ALICE)
    async with session_maker() as db:
        db.add(Reservation(
            allowed_email_id=alice_id,
            time_slot_id=slot_id,
            reservation_date=WEDNESDAY,
            cancellation_code="AAAA1111",
        ))
        await db.commit()
    async with session_maker() as db:
        with pytest.raises(catalog.CatalogError) as exc_info:
            await catalog.delete_email(db, alice_id)
        await db.rollback()
    assert "1 active reservation" in exc_info.value.message
    assert await _reservations(session_maker) == 1
