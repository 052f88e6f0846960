# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""HTTP status for each rejection kind."""

from fastapi import HTTPException, status

from slotify_server.services.results import Failure, Rejection

STATUS_CODES: dict[Failure, int] = {
    Failure.EMAIL_NOT_ALLOWED: status.HTTP_403_FORBIDDEN,
    Failure.SLOT_INACTIVE_OR_MISSING: status.HTTP_400_BAD_REQUEST,
    Failure.DAY_MISMATCH: status.HTTP_400_BAD_REQUEST,
    Failure.SLOT_IN_PAST: status.HTTP_400_BAD_REQUEST,
    Failure.ALREADY_RESERVED: status.HTTP_409_CONFLICT,
    Failure.SLOT_FULL: status.HTTP_409_CONFLICT,
    Failure.CODE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    Failure.ALREADY_CANCELLED: status.HTTP_409_CONFLICT,
    Failure.CANCELLATION_WINDOW_CLOSED: status.HTTP_400_BAD_REQUEST,
    Failure.SESSION_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    Failure.NOT_OWNER_OR_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    Failure.LINK_INVALID: status.HTTP_404_NOT_FOUND,
    Failure.LINK_EXPIRED: status.HTTP_410_GONE,
    Failure.EMAIL_DELIVERY_FAILED: status.HTTP_502_BAD_GATEWAY,
    Failure.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def rejection_error(rejection: Rejection) -> HTTPException:
    return HTTPException(
        status_code=STATUS_CODES[rejection.kind],
        detail={"error": rejection.kind.value, "message": rejection.message},
    )
