# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Magic links and pending reservations: the token flow that stands in for user accounts.

A magic link is a capability: whoever holds the token manages the bound
email's reservations until it expires. Expired magic links are kept (expiry
is checked on read); expired pending reservations are deleted when found.
"""

import json
import logging
import secrets
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import contains_eager

from slotify_server.config import settings
from slotify_server.models import AllowedEmail, MagicLink, PendingReservation, Reservation, TimeSlot
from slotify_server.services.booking import BatchOutcome, Selection, book_batch, normalize_email
from slotify_server.services.calendar import as_utc, business_today, can_cancel, day_key, parse_day_key, utc_now
from slotify_server.services.email import EmailSender, TemplateKind
from slotify_server.services.results import Failure, Rejection

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32  # 256 bits, 64 hex chars


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def check_link(link: MagicLink | PendingReservation | None, now: datetime) -> Failure | None:
    """Existence and expiry check for a stored token row. No I/O."""
    if link is None:
        return Failure.LINK_INVALID
    if as_utc(now) > as_utc(link.expires_at):
        return Failure.LINK_EXPIRED
    return None


def owns(link: MagicLink, owner_email: str | None) -> bool:
    """Whether the link's email owns a reservation whose owner is ``owner_email``."""
    return owner_email is not None and owner_email == link.email


def serialize_selections(selections: list[Selection]) -> str:
    return json.dumps([{"slot_id": s.slot_id, "date": day_key(s.day)} for s in selections])


def deserialize_selections(raw: str) -> list[Selection]:
    return [Selection(slot_id=int(item["slot_id"]), day=parse_day_key(item["date"])) for item in json.loads(raw)]


@dataclass(frozen=True)
class ReservationView:
    id: int
    day: date
    slot_id: int
    start_time: str
    end_time: str
    cancellation_code: str
    can_cancel: bool


@dataclass
class LinkSession:
    email: str
    reservations: list[ReservationView] = field(default_factory=list)


@dataclass
class PendingSession:
    email: str
    selections: list[Selection]


@dataclass
class PendingConfirmation:
    email: str
    outcome: BatchOutcome


async def request_magic_link(
    db: AsyncSession,
    sender: EmailSender,
    email: str,
    now: datetime | None = None,
) -> None:
    """Email a 1-hour magic link. Unknown emails are a silent no-op so callers cannot enumerate the allow-list."""
    now = as_utc(now or utc_now())
    email = normalize_email(email)
    try:
        allowed = await db.scalar(select(AllowedEmail.id).where(AllowedEmail.email == email))
        if allowed is None:
            await db.rollback()
            logger.info("Magic link requested for an email not on the allow-list")
            return
        token = generate_token()
        db.add(MagicLink(
            email=email,
            token=token,
            expires_at=now + timedelta(minutes=settings.magic_link_ttl_minutes),
        ))
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Error creating magic link")
        await db.rollback()
        return
    await sender.send(TemplateKind.MAGIC_LINK, email, {"token": token, "ttl_label": "1 hour"})


async def redeem_magic_link(db: AsyncSession, token: str, now: datetime | None = None) -> LinkSession | Rejection:
    """Resolve a magic link to its email and active reservations from today on, soonest first."""
    now = as_utc(now or utc_now())
    try:
        link = await db.scalar(select(MagicLink).where(MagicLink.token == token))
        failure = check_link(link, now)
        if failure is not None:
            await db.rollback()
            return Rejection.of(failure)
        result = await db.execute(
            select(Reservation)
            .join(Reservation.allowed_email)
            .join(Reservation.time_slot)
            .options(contains_eager(Reservation.time_slot))
            .where(
                AllowedEmail.email == link.email,
                Reservation.cancelled_at.is_(None),
                Reservation.reservation_date >= business_today(now),
            )
            .order_by(Reservation.reservation_date, TimeSlot.start_time)
        )
        reservations = result.scalars().all()
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Error redeeming magic link")
        await db.rollback()
        return Rejection.of(Failure.INTERNAL_ERROR)
    return LinkSession(
        email=link.email,
        reservations=[
            ReservationView(
                id=r.id,
                day=r.reservation_date,
                slot_id=r.time_slot_id,
                start_time=r.time_slot.start_time,
                end_time=r.time_slot.end_time,
                cancellation_code=r.cancellation_code,
                can_cancel=can_cancel(r.reservation_date, r.time_slot.start_time, now),
            )
            for r in reservations
        ],
    )


async def create_magic_link_from_token(
    db: AsyncSession,
    email: str,
    token: str,
    now: datetime | None = None,
) -> bool:
    """Turn a confirmed pending token into a 30-day magic link. Idempotent per token."""
    now = as_utc(now or utc_now())
    try:
        existing = await db.scalar(select(MagicLink.id).where(MagicLink.token == token))
        if existing is not None:
            await db.rollback()
            return True
        db.add(MagicLink(
            email=normalize_email(email),
            token=token,
            expires_at=now + timedelta(days=settings.magic_link_session_days),
        ))
        await db.commit()
    except IntegrityError:
        # created concurrently with the same token
        await db.rollback()
    except SQLAlchemyError:
        logger.exception("Error creating magic link from pending token")
        await db.rollback()
        return False
    return True


async def create_pending_reservation(
    db: AsyncSession,
    sender: EmailSender,
    email: str,
    selections: list[Selection],
    now: datetime | None = None,
) -> str | Rejection:
    """Store anonymous selections behind a 1-hour token and email the link.

    Unlike magic-link requests, unknown emails are rejected before any token
    is issued. A failed email is fatal here: the pending row is removed.
    """
    now = as_utc(now or utc_now())
    email = normalize_email(email)
    token = generate_token()
    try:
        allowed = await db.scalar(select(AllowedEmail.id).where(AllowedEmail.email == email))
        if allowed is None:
            await db.rollback()
            return Rejection.of(Failure.EMAIL_NOT_ALLOWED)
        db.add(PendingReservation(
            email=email,
            token=token,
            slots=serialize_selections(selections),
            expires_at=now + timedelta(minutes=settings.pending_reservation_ttl_minutes),
        ))
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Error creating pending reservation")
        await db.rollback()
        return Rejection.of(Failure.INTERNAL_ERROR)

    logger.info("Pending reservation for %s with %d selection(s)", email, len(selections))
    sent = await sender.send(TemplateKind.MAGIC_LINK, email, {"token": token, "ttl_label": "1 hour"})
    if not sent.success:
        await delete_pending_reservation(db, token)
        return Rejection.of(Failure.EMAIL_DELIVERY_FAILED)
    return "Email sent! Follow the link to finish your reservation."


async def redeem_pending_reservation(
    db: AsyncSession,
    token: str,
    now: datetime | None = None,
) -> PendingSession | Rejection:
    """Return the pending email and selections. Expired rows are deleted on sight."""
    now = as_utc(now or utc_now())
    try:
        pending = await db.scalar(select(PendingReservation).where(PendingReservation.token == token))
        failure = check_link(pending, now)
        if failure is Failure.LINK_EXPIRED:
            await db.execute(delete(PendingReservation).where(PendingReservation.id == pending.id))
            await db.commit()
            logger.info("Deleted expired pending reservation %s", pending.id)
        else:
            await db.commit()
    except SQLAlchemyError:
        logger.exception("Error reading pending reservation")
        await db.rollback()
        return Rejection.of(Failure.INTERNAL_ERROR)
    if failure is not None:
        return Rejection.of(failure)
    return PendingSession(email=pending.email, selections=deserialize_selections(pending.slots))


async def delete_pending_reservation(db: AsyncSession, token: str) -> bool:
    try:
        await db.execute(delete(PendingReservation).where(PendingReservation.token == token))
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Error deleting pending reservation")
        await db.rollback()
        return False
    return True


async def confirm_pending_reservation(
    session_maker: async_sessionmaker[AsyncSession],
    sender: EmailSender,
    token: str,
    selections: list[Selection] | None = None,
    now: datetime | None = None,
) -> PendingConfirmation | Rejection:
    """Book the pending selections (or an edited list) for the pending email.

    On at least one success the token becomes a 30-day magic link and the
    pending row is removed.
    """
    async with session_maker() as db:
        pending = await redeem_pending_reservation(db, token, now)
    if isinstance(pending, Rejection):
        return pending
    outcome = await book_batch(session_maker, sender, pending.email, selections or pending.selections, now)
    if outcome.booked:
        async with session_maker() as db:
            await create_magic_link_from_token(db, pending.email, token, now)
            await delete_pending_reservation(db, token)
    return PendingConfirmation(email=pending.email, outcome=outcome)


async def book_with_magic_link(
    session_maker: async_sessionmaker[AsyncSession],
    sender: EmailSender,
    token: str,
    selections: list[Selection],
    now: datetime | None = None,
) -> BatchOutcome | Rejection:
    """Batch booking for the email bound to a valid magic link."""
    async with session_maker() as db:
        try:
            link = await db.scalar(select(MagicLink).where(MagicLink.token == token))
            await db.commit()
        except SQLAlchemyError:
            logger.exception("Error reading magic link")
            return Rejection.of(Failure.INTERNAL_ERROR)
    if check_link(link, as_utc(now or utc_now())) is not None:
        return Rejection.of(Failure.SESSION_EXPIRED)
    return await book_batch(session_maker, sender, link.email, selections, now)
