# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Recurring weekly time slot."""

from sqlalchemy import Boolean, CheckConstraint, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from slotify_server.models.base import Base
from slotify_server.models.timestamp import TimestampMixin


class TimeSlot(Base, TimestampMixin):
    """Weekly window (day of week, HH:MM start/end) with a fixed capacity. Sunday is day 0."""

    __tablename__ = "time_slots"
    __table_args__ = (
        UniqueConstraint("day_of_week", "start_time", "end_time", name="uq_time_slots_window"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_time_slots_day_of_week"),
        CheckConstraint("max_capacity > 0", name="ck_time_slots_capacity_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    reservations: Mapped[list["Reservation"]] = relationship(
        "Reservation", back_populates="time_slot", passive_deletes=True
    )
