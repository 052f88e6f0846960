# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Database models."""

from slotify_server.models.base import Base
from slotify_server.models.admin import Admin
from slotify_server.models.allowed_email import AllowedEmail
from slotify_server.models.time_slot import TimeSlot
from slotify_server.models.reservation import Reservation
from slotify_server.models.magic_link import MagicLink
from slotify_server.models.pending_reservation import PendingReservation

__all__ = [
    "Base",
    "Admin",
    "AllowedEmail",
    "TimeSlot",
    "Reservation",
    "MagicLink",
    "PendingReservation",
]
