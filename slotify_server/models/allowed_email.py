# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Allow-listed student email."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from slotify_server.models.base import Base
from slotify_server.models.timestamp import TimestampMixin


class AllowedEmail(Base, TimestampMixin):
    """An email address permitted to own reservations."""

    __tablename__ = "allowed_emails"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    reservations: Mapped[list["Reservation"]] = relationship(
        "Reservation", back_populates="allowed_email", passive_deletes=True
    )
