# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Cancellation by code or by magic-link token, sharing one commit path."""

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from slotify_server.models import MagicLink, Reservation
from slotify_server.services.calendar import as_utc, can_cancel, utc_now
from slotify_server.services.results import Failure, Rejection
from slotify_server.services.tokens import check_link, owns

logger = logging.getLogger(__name__)


async def _commit_cancellation(db: AsyncSession, reservation: Reservation, now: datetime) -> Rejection | None:
    if reservation.cancelled_at is not None:
        return Rejection.of(Failure.ALREADY_CANCELLED)
    if not can_cancel(reservation.reservation_date, reservation.time_slot.start_time, now):
        return Rejection.of(Failure.CANCELLATION_WINDOW_CLOSED)
    result = await db.execute(
        update(Reservation)
        .where(Reservation.id == reservation.id, Reservation.cancelled_at.is_(None))
        .values(cancelled_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # a concurrent cancel got there first
        return Rejection.of(Failure.ALREADY_CANCELLED)
    await db.commit()
    logger.info("Reservation %s cancelled", reservation.id)
    return None


async def _load_reservation(db: AsyncSession, *criteria) -> Reservation | None:
    return await db.scalar(
        select(Reservation)
        .options(selectinload(Reservation.time_slot), selectinload(Reservation.allowed_email))
        .where(*criteria)
    )


async def _by_code(db: AsyncSession, code: str, now: datetime) -> Rejection | None:
    reservation = await _load_reservation(db, Reservation.cancellation_code == code.strip().upper())
    if reservation is None:
        return Rejection.of(Failure.CODE_NOT_FOUND)
    return await _commit_cancellation(db, reservation, now)


async def _by_token(db: AsyncSession, token: str, reservation_id: int, now: datetime) -> Rejection | None:
    link = await db.scalar(select(MagicLink).where(MagicLink.token == token))
    if check_link(link, now) is not None:
        return Rejection.of(Failure.SESSION_EXPIRED)
    reservation = await _load_reservation(db, Reservation.id == reservation_id)
    if not owns(link, reservation.allowed_email.email if reservation else None):
        return Rejection.of(Failure.NOT_OWNER_OR_NOT_FOUND)
    return await _commit_cancellation(db, reservation, now)


async def cancel_by_code(db: AsyncSession, code: str, now: datetime | None = None) -> Rejection | None:
    """Cancel with the 8-character code. Returns None on success."""
    now = as_utc(now or utc_now())
    try:
        rejection = await _by_code(db, code, now)
    except SQLAlchemyError:
        logger.exception("Error cancelling reservation by code")
        await db.rollback()
        return Rejection.of(Failure.INTERNAL_ERROR)
    if rejection is not None:
        await db.rollback()
    return rejection


async def cancel_by_token_and_id(
    db: AsyncSession,
    token: str,
    reservation_id: int,
    now: datetime | None = None,
) -> Rejection | None:
    """Cancel a reservation owned by the magic link's email. Returns None on success."""
    now = as_utc(now or utc_now())
    try:
        rejection = await _by_token(db, token, reservation_id, now)
    except SQLAlchemyError:
        logger.exception("Error cancelling reservation %s", reservation_id)
        await db.rollback()
        return Rejection.of(Failure.INTERNAL_ERROR)
    if rejection is not None:
        await db.rollback()
    return rejection
