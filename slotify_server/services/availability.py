# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Remaining capacity per (slot, day), always derived from active reservation counts."""

from collections.abc import Iterable
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from slotify_server.models import Reservation, TimeSlot
from slotify_server.services.calendar import day_key, day_of_week, to_business_day


def availability_key(slot_id: int, day: date) -> str:
    return f"{slot_id}|{day_key(day)}"


async def count_active(db: AsyncSession, slot_id: int, day: date) -> int:
    """Active (not cancelled) reservations for one slot on one day."""
    count = await db.scalar(
        select(func.count())
        .select_from(Reservation)
        .where(
            Reservation.time_slot_id == slot_id,
            Reservation.reservation_date == day,
            Reservation.cancelled_at.is_(None),
        )
    )
    return count or 0


async def remaining_capacity(db: AsyncSession, slot_id: int, day: date | str) -> int:
    """max_capacity minus active reservations. Not floored: <= 0 means full. Missing slot reports 0."""
    slot = await db.get(TimeSlot, slot_id)
    if slot is None:
        return 0
    return slot.max_capacity - await count_active(db, slot_id, to_business_day(day))


async def active_counts(
    db: AsyncSession,
    days: Iterable[date],
    slot_ids: Iterable[int] | None = None,
) -> dict[tuple[int, date], int]:
    """One grouped aggregate over (slot, day) for all requested days."""
    days = list(days)
    if not days:
        return {}
    stmt = (
        select(Reservation.time_slot_id, Reservation.reservation_date, func.count(Reservation.id))
        .where(
            Reservation.cancelled_at.is_(None),
            Reservation.reservation_date.in_(days),
        )
        .group_by(Reservation.time_slot_id, Reservation.reservation_date)
    )
    if slot_ids is not None:
        stmt = stmt.where(Reservation.time_slot_id.in_(list(slot_ids)))
    result = await db.execute(stmt)
    return {(slot_id, day): count for slot_id, day, count in result.all()}


def _cell(slot: TimeSlot, taken: int) -> dict[str, int]:
    return {"available": max(slot.max_capacity - taken, 0), "capacity": slot.max_capacity}


async def week_availability(db: AsyncSession, days: Iterable[date | str]) -> dict[str, dict[str, int]]:
    """Availability of every active slot on each requested day matching its weekday.

    Keys are "<slot_id>|<YYYY-MM-DD>".
    """
    wanted = sorted({to_business_day(d) for d in days})
    if not wanted:
        return {}
    result = await db.execute(select(TimeSlot).where(TimeSlot.is_active.is_(True)))
    slots = result.scalars().all()
    counts = await active_counts(db, wanted)
    out: dict[str, dict[str, int]] = {}
    for day in wanted:
        weekday = day_of_week(day)
        for slot in slots:
            if slot.day_of_week != weekday:
                continue
            out[availability_key(slot.id, day)] = _cell(slot, counts.get((slot.id, day), 0))
    return out


async def pair_availability(
    db: AsyncSession,
    pairs: Iterable[tuple[int, date | str]],
) -> dict[str, dict[str, int]]:
    """Availability for explicit (slot_id, day) pairs. Unknown slots are omitted."""
    wanted = [(slot_id, to_business_day(day)) for slot_id, day in pairs]
    if not wanted:
        return {}
    slot_ids = {slot_id for slot_id, _ in wanted}
    result = await db.execute(select(TimeSlot).where(TimeSlot.id.in_(slot_ids)))
    slots = {slot.id: slot for slot in result.scalars().all()}
    counts = await active_counts(db, {day for _, day in wanted}, slot_ids)
    out: dict[str, dict[str, int]] = {}
    for slot_id, day in wanted:
        slot = slots.get(slot_id)
        if slot is None:
            continue
        out[availability_key(slot_id, day)] = _cell(slot, counts.get((slot_id, day), 0))
    return out
