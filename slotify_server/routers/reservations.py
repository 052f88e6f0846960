# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Public booking and cancel-by-code routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from slotify_server.api.errors import rejection_error
from slotify_server.api.schemas import (
    BatchFailure,
    BatchReservationCreate,
    BatchResponse,
    BookedResponse,
    CancelByCodeRequest,
    MessageResponse,
    ReservationCreate,
    SelectionIn,
)
from slotify_server.database import get_db, get_session_maker
from slotify_server.services.booking import BatchOutcome, Booked, Selection, book_and_notify, book_batch
from slotify_server.services.calendar import Clock, get_clock, to_business_day
from slotify_server.services.cancellation import cancel_by_code
from slotify_server.services.email import EmailSender, get_email_sender
from slotify_server.services.results import Rejection

router = APIRouter(prefix="/reservations", tags=["reservations"])


def to_selections(items: list[SelectionIn]) -> list[Selection]:
    return [Selection(slot_id=item.slot_id, day=to_business_day(item.date)) for item in items]


def booked_response(booked: Booked) -> BookedResponse:
    return BookedResponse(
        reservation_id=booked.reservation_id,
        cancellation_code=booked.cancellation_code,
        slot_id=booked.slot_id,
        date=booked.day,
        start_time=booked.start_time,
        end_time=booked.end_time,
    )


def batch_fields(outcome: BatchOutcome) -> dict:
    return {
        "booked": [booked_response(b) for b in outcome.booked],
        "failed": [
            BatchFailure(
                slot_id=selection.slot_id,
                date=selection.day,
                error=rejection.kind.value,
                message=rejection.message,
            )
            for selection, rejection in outcome.failed
        ],
        "email_sent": bool(outcome.email and outcome.email.success),
    }


@router.post("", response_model=BookedResponse, status_code=201)
async def create_reservation(
    data: ReservationCreate,
    db: AsyncSession = Depends(get_db),
    sender: EmailSender = Depends(get_email_sender),
    clock: Clock = Depends(get_clock),
) -> BookedResponse:
    """Book one slot on one day and email the cancellation code."""
    result = await book_and_notify(db, sender, data.email, data.slot_id, data.date, now=clock())
    if isinstance(result, Rejection):
        raise rejection_error(result)
    return booked_response(result)


@router.post("/batch", response_model=BatchResponse)
async def create_reservations(
    data: BatchReservationCreate,
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
    sender: EmailSender = Depends(get_email_sender),
    clock: Clock = Depends(get_clock),
) -> BatchResponse:
    """Book several (slot, day) pairs at once. Partial success is allowed."""
    outcome = await book_batch(session_maker, sender, data.email, to_selections(data.selections), now=clock())
    return BatchResponse(**batch_fields(outcome))


@router.post("/cancel", response_model=MessageResponse)
async def cancel_reservation(
    data: CancelByCodeRequest,
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> MessageResponse:
    """Cancel with the 8-character code from the confirmation email."""
    rejection = await cancel_by_code(db, data.cancellation_code, now=clock())
    if rejection is not None:
        raise rejection_error(rejection)
    return MessageResponse(message="Reservation cancelled")
