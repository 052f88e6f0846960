# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Admin account model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from slotify_server.models.base import Base
from slotify_server.models.timestamp import TimestampMixin


class Admin(Base, TimestampMixin):
    """Administrator credential for the catalog and allow-list endpoints."""

    __tablename__ = "admins"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
