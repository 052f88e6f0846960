# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pending reservation routes: anonymous selections confirmed through an emailed link."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from slotify_server.api.errors import rejection_error
from slotify_server.api.schemas import (
    MessageResponse,
    PendingConfirmRequest,
    PendingConfirmResponse,
    PendingCreate,
    PendingResponse,
    SelectionOut,
)
from slotify_server.database import get_db, get_session_maker
from slotify_server.rate_limit import rate_limit_dep
from slotify_server.routers.reservations import batch_fields, to_selections
from slotify_server.services.calendar import Clock, get_clock
from slotify_server.services.email import EmailSender, get_email_sender
from slotify_server.services.results import Rejection
from slotify_server.services.tokens import (
    confirm_pending_reservation,
    create_pending_reservation,
    redeem_pending_reservation,
)

router = APIRouter(prefix="/pending-reservations", tags=["pending-reservations"])


@router.post("", response_model=MessageResponse, status_code=201)
async def create_pending(
    data: PendingCreate,
    db: AsyncSession = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
    clock: Clock = Depends(get_clock),
    _: None = Depends(rate_limit_dep),
) -> MessageResponse:
    """Store the selections and email a 1-hour confirmation link."""
    result = await create_pending_reservation(db, sender, data.email, to_selections(data.selections), now=clock())
    if isinstance(result, Rejection):
        raise rejection_error(result)
    return MessageResponse(message=result)


@router.get("/{token}", response_model=PendingResponse)
async def get_pending(
    token: str,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> PendingResponse:
    """Email and selections behind a pending token."""
    pending = await redeem_pending_reservation(db, token, now=clock())
    if isinstance(pending, Rejection):
        raise rejection_error(pending)
    return PendingResponse(
        email=pending.email,
        selections=[SelectionOut(slot_id=s.slot_id, date=s.day) for s in pending.selections],
    )


@router.post("/{token}/confirm", response_model=PendingConfirmResponse)
async def confirm_pending(
    token: str,
    data: PendingConfirmRequest | None = None,
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
    sender: EmailSender = Depends(get_email_sender),
    clock: Clock = Depends(get_clock),
) -> PendingConfirmResponse:
    """Book the pending selections, or an edited list. The token then works as a 30-day magic link."""
    selections = to_selections(data.selections) if data and data.selections else None
    result = await confirm_pending_reservation(session_maker, sender, token, selections, now=clock())
    if isinstance(result, Rejection):
        raise rejection_error(result)
    return PendingConfirmResponse(email=result.email, **batch_fields(result.outcome))
