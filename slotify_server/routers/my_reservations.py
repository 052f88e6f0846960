# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Magic-link routes: request a link, list, cancel and book with it."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from slotify_server.api.errors import rejection_error
from slotify_server.api.schemas import (
    BatchResponse,
    MagicLinkBookRequest,
    MagicLinkRequest,
    MessageResponse,
    MyReservation,
    MyReservationsResponse,
    TokenBody,
)
from slotify_server.database import get_db, get_session_maker
from slotify_server.rate_limit import rate_limit_dep
from slotify_server.routers.reservations import batch_fields, to_selections
from slotify_server.services.calendar import Clock, get_clock
from slotify_server.services.cancellation import cancel_by_token_and_id
from slotify_server.services.email import EmailSender, get_email_sender
from slotify_server.services.results import Rejection
from slotify_server.services.tokens import book_with_magic_link, redeem_magic_link, request_magic_link

router = APIRouter(prefix="/my-reservations", tags=["my-reservations"])


@router.post("/magic-link", response_model=MessageResponse)
async def post_magic_link(
    data: MagicLinkRequest,
    db: AsyncSession = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
    clock: Clock = Depends(get_clock),
    _: None = Depends(rate_limit_dep),
) -> MessageResponse:
    """Email a sign-in link. Same answer whether or not the email is allowed."""
    await request_magic_link(db, sender, data.email, now=clock())
    return MessageResponse(message="If this email is registered, a link has been sent.")


@router.get("", response_model=MyReservationsResponse)
async def get_my_reservations(
    token: str = Query(..., min_length=1, max_length=64),
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> MyReservationsResponse:
    """Upcoming active reservations of the link's email."""
    session = await redeem_magic_link(db, token, now=clock())
    if isinstance(session, Rejection):
        raise rejection_error(session)
    return MyReservationsResponse(
        email=session.email,
        reservations=[
            MyReservation(
                id=r.id,
                slot_id=r.slot_id,
                date=r.day,
                start_time=r.start_time,
                end_time=r.end_time,
                cancellation_code=r.cancellation_code,
                can_cancel=r.can_cancel,
            )
            for r in session.reservations
        ],
    )


@router.post("/{reservation_id}/cancel", response_model=MessageResponse)
async def cancel_my_reservation(
    reservation_id: int,
    data: TokenBody,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> MessageResponse:
    """Cancel a reservation owned by the link's email."""
    rejection = await cancel_by_token_and_id(db, data.token, reservation_id, now=clock())
    if rejection is not None:
        raise rejection_error(rejection)
    return MessageResponse(message="Reservation cancelled")


@router.post("/book", response_model=BatchResponse)
async def book_my_reservations(
    data: MagicLinkBookRequest,
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
    sender: EmailSender = Depends(get_email_sender),
    clock: Clock = Depends(get_clock),
) -> BatchResponse:
    """Book more slots for the link's email."""
    outcome = await book_with_magic_link(
        session_maker, sender, data.token, to_selections(data.selections), now=clock()
    )
    if isinstance(outcome, Rejection):
        raise rejection_error(outcome)
    return BatchResponse(**batch_fields(outcome))
