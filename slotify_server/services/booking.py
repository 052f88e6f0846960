# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Booking rules: validate and commit reservations, single and batched.

Capacity is re-validated inside the inserting transaction after the slot row
is locked (SELECT ... FOR UPDATE; SQLite serializes writers with BEGIN
IMMEDIATE), so concurrent bookings of one slot cannot overshoot it. The
partial unique index on active (email, slot, day) rows is the final guard
against duplicates.
"""

import asyncio
import logging
import secrets
import string
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from slotify_server.models import AllowedEmail, Reservation, TimeSlot
from slotify_server.services.availability import count_active
from slotify_server.services.calendar import day_of_week, slot_start_at, to_business_day, utc_now
from slotify_server.services.email import EmailResult, EmailSender, TemplateKind
from slotify_server.services.results import Failure, Rejection

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8
CODE_ATTEMPTS = 3


def generate_cancellation_code() -> str:
    """8 uniform draws from [A-Z0-9]."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def normalize_email(email: str) -> str:
    return email.strip().lower()


def allowed_email_lookup(email: str) -> Select:
    """Allow-list row under a shared lock, so the email cannot be removed until the booking commits."""
    return select(AllowedEmail).where(AllowedEmail.email == email).with_for_update(read=True)


@dataclass(frozen=True)
class Selection:
    slot_id: int
    day: date


@dataclass(frozen=True)
class Booked:
    reservation_id: int
    cancellation_code: str
    slot_id: int
    day: date
    start_time: str
    end_time: str

    def email_payload(self) -> dict[str, Any]:
        return {
            "date": self.day,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "cancellation_code": self.cancellation_code,
        }


@dataclass
class BatchOutcome:
    booked: list[Booked] = field(default_factory=list)
    failed: list[tuple[Selection, Rejection]] = field(default_factory=list)
    email: EmailResult | None = None


class CodeCollision(Exception):
    """The generated cancellation code was taken concurrently; the booking can be retried."""


def _is_code_collision(exc: IntegrityError) -> bool:
    return "cancellation_code" in str(exc.orig)


async def _unused_code(db: AsyncSession) -> str:
    while True:
        code = generate_cancellation_code()
        taken = await db.scalar(select(Reservation.id).where(Reservation.cancellation_code == code))
        if taken is None:
            return code


async def _book(db: AsyncSession, email: str, slot_id: int, day: date, now: datetime) -> Booked | Rejection:
    allowed = await db.scalar(allowed_email_lookup(email))
    if allowed is None:
        return Rejection.of(Failure.EMAIL_NOT_ALLOWED)

    slot = await db.scalar(select(TimeSlot).where(TimeSlot.id == slot_id).with_for_update())
    if slot is None or not slot.is_active:
        return Rejection.of(Failure.SLOT_INACTIVE_OR_MISSING)

    if day_of_week(day) != slot.day_of_week:
        return Rejection.of(Failure.DAY_MISMATCH)

    if slot_start_at(day, slot.start_time) < now:
        return Rejection.of(Failure.SLOT_IN_PAST)

    existing = await db.scalar(
        select(Reservation.id).where(
            Reservation.allowed_email_id == allowed.id,
            Reservation.time_slot_id == slot.id,
            Reservation.reservation_date == day,
            Reservation.cancelled_at.is_(None),
        )
    )
    if existing is not None:
        return Rejection.of(Failure.ALREADY_RESERVED)

    if slot.max_capacity - await count_active(db, slot.id, day) <= 0:
        return Rejection.of(Failure.SLOT_FULL)

    reservation = Reservation(
        allowed_email_id=allowed.id,
        time_slot_id=slot.id,
        reservation_date=day,
        cancellation_code=await _unused_code(db),
    )
    db.add(reservation)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        if _is_code_collision(exc):
            raise CodeCollision from exc
        # lost a race against the same (email, slot, day)
        return Rejection.of(Failure.ALREADY_RESERVED)
    await db.commit()
    logger.info("Reservation %s: %s booked slot %s on %s", reservation.id, email, slot.id, day)
    return Booked(
        reservation_id=reservation.id,
        cancellation_code=reservation.cancellation_code,
        slot_id=slot.id,
        day=day,
        start_time=slot.start_time,
        end_time=slot.end_time,
    )


async def book(
    db: AsyncSession,
    email: str,
    slot_id: int,
    day: date | datetime | str,
    now: datetime | None = None,
) -> Booked | Rejection:
    """Validate and commit one reservation.

    Checks run in order and stop at the first failure: allow-list, slot
    active, weekday, not in the past, no active duplicate, capacity.
    """
    now = now or utc_now()
    try:
        for _ in range(CODE_ATTEMPTS):
            try:
                result = await _book(db, normalize_email(email), slot_id, to_business_day(day), now)
                break
            except CodeCollision:
                logger.warning("Cancellation code collision on slot %s, retrying", slot_id)
        else:
            result = Rejection.of(Failure.INTERNAL_ERROR)
    except SQLAlchemyError:
        logger.exception("Error creating reservation for slot %s", slot_id)
        await db.rollback()
        return Rejection.of(Failure.INTERNAL_ERROR)
    if isinstance(result, Rejection):
        await db.rollback()
        logger.info("Booking rejected (%s): %s slot %s on %s", result.kind.value, email, slot_id, day)
    return result


async def book_and_notify(
    db: AsyncSession,
    sender: EmailSender,
    email: str,
    slot_id: int,
    day: date | datetime | str,
    now: datetime | None = None,
) -> Booked | Rejection:
    """Book one slot and send the single confirmation. A failed email never undoes the booking."""
    result = await book(db, email, slot_id, day, now)
    if isinstance(result, Booked):
        await sender.send(
            TemplateKind.SINGLE_RESERVATION_CONFIRMATION,
            normalize_email(email),
            result.email_payload(),
        )
    return result


async def book_batch(
    session_maker: async_sessionmaker[AsyncSession],
    sender: EmailSender,
    email: str,
    selections: list[Selection],
    now: datetime | None = None,
) -> BatchOutcome:
    """Run every selection through ``book`` concurrently; partial success is allowed.

    One consolidated confirmation covers the successes; nothing is sent when
    every selection failed.
    """

    async def _one(selection: Selection) -> Booked | Rejection:
        async with session_maker() as db:
            return await book(db, email, selection.slot_id, selection.day, now)

    results = await asyncio.gather(*(_one(s) for s in selections))
    outcome = BatchOutcome()
    for selection, result in zip(selections, results):
        if isinstance(result, Booked):
            outcome.booked.append(result)
        else:
            outcome.failed.append((selection, result))
    if outcome.booked:
        outcome.email = await sender.send(
            TemplateKind.BULK_RESERVATION_CONFIRMATION,
            normalize_email(email),
            {"reservations": [b.email_payload() for b in outcome.booked]},
        )
    logger.info(
        "Batch booking for %s: %d booked, %d failed",
        email, len(outcome.booked), len(outcome.failed),
    )
    return outcome
