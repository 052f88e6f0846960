# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pending reservation model - selections awaiting email confirmation."""

from datetime import datetime
from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from slotify_server.models.base import Base
from slotify_server.models.timestamp import TimestampMixin


class PendingReservation(Base, TimestampMixin):
    """Slot/date selections (JSON list) made before the requester proved ownership of the email."""

    __tablename__ = "pending_reservations"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    slots: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
