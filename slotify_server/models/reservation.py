# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Reservation of one allowed email into one slot on one calendar day."""

from datetime import date, datetime
from sqlalchemy import Date, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from slotify_server.models.allowed_email import AllowedEmail
from slotify_server.models.base import Base
from slotify_server.models.time_slot import TimeSlot
from slotify_server.models.timestamp import TimestampMixin


class Reservation(Base, TimestampMixin):
    """A booking. Cancelled by setting cancelled_at; rows are never deleted by the booking core."""

    __tablename__ = "reservations"
    __table_args__ = (
        # only active reservations are unique per (email, slot, day)
        Index(
            "uq_reservations_active_booking",
            "allowed_email_id",
            "time_slot_id",
            "reservation_date",
            unique=True,
            postgresql_where=text("cancelled_at IS NULL"),
            sqlite_where=text("cancelled_at IS NULL"),
        ),
        Index("ix_reservations_slot_date", "time_slot_id", "reservation_date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    allowed_email_id: Mapped[int] = mapped_column(
        ForeignKey("allowed_emails.id", ondelete="CASCADE"), nullable=False, index=True
    )
    time_slot_id: Mapped[int] = mapped_column(
        ForeignKey("time_slots.id", ondelete="CASCADE"), nullable=False
    )
    reservation_date: Mapped[date] = mapped_column(Date, nullable=False)
    cancellation_code: Mapped[str] = mapped_column(String(8), unique=True, nullable=False, index=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    allowed_email: Mapped[AllowedEmail] = relationship(AllowedEmail, back_populates="reservations")
    time_slot: Mapped[TimeSlot] = relationship(TimeSlot, back_populates="reservations")

    @property
    def is_active(self) -> bool:
        return self.cancelled_at is None
