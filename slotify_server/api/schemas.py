# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pydantic schemas for API request/response."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

# A requested day: "YYYY-MM-DD", or a datetime marking the intended midnight
RequestedDay = date | datetime


# Slots & availability
class SlotResponse(BaseModel):
    id: int
    day_of_week: int
    start_time: str
    end_time: str
    max_capacity: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class SelectionIn(BaseModel):
    slot_id: int
    date: RequestedDay


class SelectionOut(BaseModel):
    slot_id: int
    date: date


class AvailabilityCell(BaseModel):
    available: int
    capacity: int


class AvailabilityRequest(BaseModel):
    selections: list[SelectionIn] = Field(min_length=1, max_length=200)


# Reservations
class ReservationCreate(BaseModel):
    email: EmailStr
    slot_id: int
    date: RequestedDay


class BatchReservationCreate(BaseModel):
    email: EmailStr
    selections: list[SelectionIn] = Field(min_length=1, max_length=50)


class BookedResponse(BaseModel):
    reservation_id: int
    cancellation_code: str
    slot_id: int
    date: date
    start_time: str
    end_time: str


class BatchFailure(BaseModel):
    slot_id: int
    date: date
    error: str
    message: str


class BatchResponse(BaseModel):
    booked: list[BookedResponse]
    failed: list[BatchFailure]
    email_sent: bool


class CancelByCodeRequest(BaseModel):
    cancellation_code: str = Field(min_length=8, max_length=8)


class MessageResponse(BaseModel):
    message: str


# Magic links & pending reservations
class MagicLinkRequest(BaseModel):
    email: EmailStr


class TokenBody(BaseModel):
    token: str = Field(min_length=1, max_length=64)


class MyReservation(BaseModel):
    id: int
    slot_id: int
    date: date
    start_time: str
    end_time: str
    cancellation_code: str
    can_cancel: bool


class MyReservationsResponse(BaseModel):
    email: str
    reservations: list[MyReservation]


class MagicLinkBookRequest(BaseModel):
    token: str = Field(min_length=1, max_length=64)
    selections: list[SelectionIn] = Field(min_length=1, max_length=50)


class PendingCreate(BaseModel):
    email: EmailStr
    selections: list[SelectionIn] = Field(min_length=1, max_length=50)


class PendingResponse(BaseModel):
    email: str
    selections: list[SelectionOut]


class PendingConfirmRequest(BaseModel):
    selections: list[SelectionIn] | None = Field(default=None, max_length=50)


class PendingConfirmResponse(BatchResponse):
    email: str


# Admin
class AdminLogin(BaseModel):
    email: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class SlotCreate(BaseModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: str
    end_time: str
    max_capacity: int = Field(ge=1)


class SlotUpdate(BaseModel):
    start_time: str | None = None
    end_time: str | None = None
    max_capacity: int | None = Field(default=None, ge=1)
    is_active: bool | None = None


class EmailCreate(BaseModel):
    email: EmailStr


class AllowedEmailResponse(BaseModel):
    id: int
    email: str
    created_at: datetime
    reservations_total: int = 0
    reservations_active: int = 0


class AdminReservation(BaseModel):
    id: int
    email: str
    slot_id: int
    day_of_week: int
    start_time: str
    end_time: str
    date: date
    cancellation_code: str
    created_at: datetime
    cancelled_at: datetime | None = None
