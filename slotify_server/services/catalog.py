# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Admin management of the slot catalog, the email allow-list and the reservation log."""

import logging
from datetime import datetime

from sqlalchemy import Select, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from slotify_server.config import settings
from slotify_server.models import AllowedEmail, Reservation, TimeSlot
from slotify_server.services.booking import normalize_email
from slotify_server.services.calendar import business_today, hhmm_to_minutes, is_valid_hhmm, minutes_to_hhmm, utc_now

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Invalid admin request. Carries the HTTP status the router should answer with."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _check_time(value: str) -> None:
    if not is_valid_hhmm(value):
        raise CatalogError(f"Invalid time {value!r}, expected HH:MM")


def _check_capacity(max_capacity: int) -> None:
    if not 1 <= max_capacity <= settings.max_slot_capacity:
        raise CatalogError(f"Capacity must be between 1 and {settings.max_slot_capacity}")


def split_range(start_time: str, end_time: str) -> list[tuple[str, str]]:
    """Cut a range into blocks ending on the hour: 09:30-12:00 -> 09:30-10:00, 10:00-11:00, 11:00-12:00."""
    _check_time(start_time)
    _check_time(end_time)
    start = hhmm_to_minutes(start_time)
    end = hhmm_to_minutes(end_time)
    if end <= start:
        raise CatalogError("End time must be after start time")
    if start % 30 or end % 30:
        raise CatalogError("Only full (:00) or half (:30) hours are allowed")
    blocks = []
    current = start
    while current < end:
        block_end = min((current // 60 + 1) * 60, end)
        blocks.append((minutes_to_hhmm(current), minutes_to_hhmm(block_end)))
        current = block_end
    return blocks


async def list_slots(db: AsyncSession, active_only: bool = False) -> list[TimeSlot]:
    stmt = select(TimeSlot).order_by(TimeSlot.day_of_week, TimeSlot.start_time)
    if active_only:
        stmt = stmt.where(TimeSlot.is_active.is_(True))
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def _get_slot(db: AsyncSession, slot_id: int) -> TimeSlot:
    slot = await db.get(TimeSlot, slot_id)
    if slot is None:
        raise CatalogError("Slot not found", status_code=404)
    return slot


async def create_slots(
    db: AsyncSession,
    day_of_week: int,
    start_time: str,
    end_time: str,
    max_capacity: int,
) -> list[TimeSlot]:
    """Create hour-block slots covering start_time..end_time on one weekday."""
    if not 0 <= day_of_week <= 6:
        raise CatalogError("Day of week must be between 0 (Sunday) and 6 (Saturday)")
    _check_capacity(max_capacity)
    blocks = split_range(start_time, end_time)
    for block_start, block_end in blocks:
        existing = await db.scalar(
            select(TimeSlot.id).where(
                TimeSlot.day_of_week == day_of_week,
                TimeSlot.start_time == block_start,
                TimeSlot.end_time == block_end,
            )
        )
        if existing is not None:
            raise CatalogError(f"Slot {block_start}-{block_end} already exists", status_code=409)
    slots = [
        TimeSlot(
            day_of_week=day_of_week,
            start_time=block_start,
            end_time=block_end,
            max_capacity=max_capacity,
            is_active=True,
        )
        for block_start, block_end in blocks
    ]
    db.add_all(slots)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise CatalogError("Slot already exists", status_code=409) from exc
    for slot in slots:
        await db.refresh(slot)
    logger.info("Created %d slot(s) on day %d from %s to %s", len(slots), day_of_week, start_time, end_time)
    return slots


async def update_slot(
    db: AsyncSession,
    slot_id: int,
    start_time: str | None = None,
    end_time: str | None = None,
    max_capacity: int | None = None,
    is_active: bool | None = None,
) -> TimeSlot:
    slot = await _get_slot(db, slot_id)
    if start_time is not None or end_time is not None:
        new_start = start_time or slot.start_time
        new_end = end_time or slot.end_time
        _check_time(new_start)
        _check_time(new_end)
        if hhmm_to_minutes(new_end) <= hhmm_to_minutes(new_start):
            raise CatalogError("End time must be after start time")
        slot.start_time = new_start
        slot.end_time = new_end
    if max_capacity is not None:
        _check_capacity(max_capacity)
        slot.max_capacity = max_capacity
    if is_active is not None:
        slot.is_active = is_active
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise CatalogError("Another slot already occupies this window", status_code=409) from exc
    return slot


async def toggle_slot(db: AsyncSession, slot_id: int) -> TimeSlot:
    slot = await _get_slot(db, slot_id)
    slot.is_active = not slot.is_active
    await db.commit()
    return slot


async def delete_slot(db: AsyncSession, slot_id: int) -> None:
    """Delete unconditionally; the slot's reservations go with it."""
    await _get_slot(db, slot_id)
    await db.execute(delete(TimeSlot).where(TimeSlot.id == slot_id))
    await db.commit()
    logger.info("Deleted slot %s", slot_id)


async def list_emails(db: AsyncSession) -> list[tuple[AllowedEmail, int, int]]:
    """Allow-list entries, newest first, with (total, active) reservation counts."""
    active = func.count(Reservation.id).filter(Reservation.cancelled_at.is_(None))
    result = await db.execute(
        select(AllowedEmail, func.count(Reservation.id), active)
        .outerjoin(Reservation, Reservation.allowed_email_id == AllowedEmail.id)
        .group_by(AllowedEmail.id)
        .order_by(AllowedEmail.created_at.desc(), AllowedEmail.id.desc())
    )
    return [(row[0], row[1], row[2]) for row in result.all()]


async def add_email(db: AsyncSession, email: str) -> AllowedEmail:
    email = normalize_email(email)
    existing = await db.scalar(select(AllowedEmail.id).where(AllowedEmail.email == email))
    if existing is not None:
        raise CatalogError("This email is already on the list", status_code=409)
    entry = AllowedEmail(email=email)
    db.add(entry)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise CatalogError("This email is already on the list", status_code=409) from exc
    await db.refresh(entry)
    logger.info("Allow-listed %s", email)
    return entry


def allowed_email_for_removal(email_id: int) -> Select:
    """Allow-list row under an exclusive lock; waits for in-flight bookings of that email."""
    return select(AllowedEmail).where(AllowedEmail.id == email_id).with_for_update()


async def delete_email(db: AsyncSession, email_id: int) -> None:
    """Remove an allow-list entry that owns no active reservation."""
    entry = await db.scalar(allowed_email_for_removal(email_id))
    if entry is None:
        raise CatalogError("Email not found", status_code=404)
    email = entry.email
    has_active = (
        select(Reservation.id)
        .where(Reservation.allowed_email_id == email_id, Reservation.cancelled_at.is_(None))
        .exists()
    )
    result = await db.execute(
        delete(AllowedEmail)
        .where(AllowedEmail.id == email_id, ~has_active)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        active = await db.scalar(
            select(func.count())
            .select_from(Reservation)
            .where(Reservation.allowed_email_id == email_id, Reservation.cancelled_at.is_(None))
        ) or 0
        raise CatalogError(f"Cannot delete this email: it has {active} active reservation(s)")
    await db.commit()
    logger.info("Removed %s from the allow-list", email)


async def list_reservations(db: AsyncSession) -> list[Reservation]:
    """All reservations, cancelled included, most recent first."""
    result = await db.execute(
        select(Reservation)
        .options(selectinload(Reservation.allowed_email), selectinload(Reservation.time_slot))
        .order_by(Reservation.created_at.desc(), Reservation.id.desc())
    )
    return list(result.scalars().all())


async def get_stats(db: AsyncSession, now: datetime | None = None) -> dict:
    today = business_today(now or utc_now())
    emails_total = await db.scalar(select(func.count()).select_from(AllowedEmail)) or 0
    slots_active = await db.scalar(
        select(func.count()).select_from(TimeSlot).where(TimeSlot.is_active.is_(True))
    ) or 0
    active = await db.scalar(
        select(func.count()).select_from(Reservation).where(Reservation.cancelled_at.is_(None))
    ) or 0
    cancelled = await db.scalar(
        select(func.count()).select_from(Reservation).where(Reservation.cancelled_at.is_not(None))
    ) or 0
    upcoming = await db.scalar(
        select(func.count()).select_from(Reservation).where(
            Reservation.cancelled_at.is_(None),
            Reservation.reservation_date >= today,
        )
    ) or 0
    return {
        "emails_total": emails_total,
        "slots_active": slots_active,
        "reservations_active": active,
        "reservations_cancelled": cancelled,
        "reservations_upcoming": upcoming,
    }
