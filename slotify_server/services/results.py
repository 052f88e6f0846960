# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Closed set of rejection kinds returned by booking, cancellation and token operations."""

from dataclasses import dataclass
from enum import Enum


class Failure(str, Enum):
    EMAIL_NOT_ALLOWED = "email_not_allowed"
    SLOT_INACTIVE_OR_MISSING = "slot_inactive_or_missing"
    DAY_MISMATCH = "day_mismatch"
    SLOT_IN_PAST = "slot_in_past"
    ALREADY_RESERVED = "already_reserved"
    SLOT_FULL = "slot_full"
    CODE_NOT_FOUND = "code_not_found"
    ALREADY_CANCELLED = "already_cancelled"
    CANCELLATION_WINDOW_CLOSED = "cancellation_window_closed"
    SESSION_EXPIRED = "session_expired"
    NOT_OWNER_OR_NOT_FOUND = "not_owner_or_not_found"
    LINK_INVALID = "link_invalid"
    LINK_EXPIRED = "link_expired"
    EMAIL_DELIVERY_FAILED = "email_delivery_failed"
    INTERNAL_ERROR = "internal_error"


MESSAGES: dict[Failure, str] = {
    Failure.EMAIL_NOT_ALLOWED: "This email is not allowed to make reservations.",
    Failure.SLOT_INACTIVE_OR_MISSING: "Invalid or inactive time slot.",
    Failure.DAY_MISMATCH: "The selected date does not fall on this slot's day of the week.",
    Failure.SLOT_IN_PAST: "This time slot has already started.",
    Failure.ALREADY_RESERVED: "You already have a reservation for this time slot.",
    Failure.SLOT_FULL: "No places left for this time slot.",
    Failure.CODE_NOT_FOUND: "Invalid cancellation code.",
    Failure.ALREADY_CANCELLED: "This reservation has already been cancelled.",
    Failure.CANCELLATION_WINDOW_CLOSED: "Reservations cannot be cancelled less than 24 hours before the slot starts.",
    Failure.SESSION_EXPIRED: "Your session has expired. Request a new link.",
    Failure.NOT_OWNER_OR_NOT_FOUND: "Reservation not found or not authorized.",
    Failure.LINK_INVALID: "Invalid link.",
    Failure.LINK_EXPIRED: "This link has expired. Please start again.",
    Failure.EMAIL_DELIVERY_FAILED: "The email could not be sent. Please try again.",
    Failure.INTERNAL_ERROR: "An error occurred. Please try again later.",
}


@dataclass(frozen=True)
class Rejection:
    """Expected business rejection; returned, never raised."""

    kind: Failure
    message: str

    @classmethod
    def of(cls, kind: Failure) -> "Rejection":
        return cls(kind=kind, message=MESSAGES[kind])
