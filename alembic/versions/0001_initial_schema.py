# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later
"""Initial schema: slots, allow-list, reservations, magic links, pending reservations, admins.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2024-09-02

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "allowed_emails",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        _created_at(),
    )
    op.create_index("ix_allowed_emails_email", "allowed_emails", ["email"], unique=True)

    op.create_table(
        "time_slots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.Column("max_capacity", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.UniqueConstraint("day_of_week", "start_time", "end_time", name="uq_time_slots_window"),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_time_slots_day_of_week"),
        sa.CheckConstraint("max_capacity > 0", name="ck_time_slots_capacity_positive"),
    )

    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "allowed_email_id",
            sa.Integer(),
            sa.ForeignKey("allowed_emails.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "time_slot_id",
            sa.Integer(),
            sa.ForeignKey("time_slots.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reservation_date", sa.Date(), nullable=False),
        sa.Column("cancellation_code", sa.String(8), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_reservations_allowed_email_id", "reservations", ["allowed_email_id"])
    op.create_index("ix_reservations_cancellation_code", "reservations", ["cancellation_code"], unique=True)
    op.create_index("ix_reservations_slot_date", "reservations", ["time_slot_id", "reservation_date"])
    # one active reservation per (email, slot, day); cancelled rows do not count
    op.create_index(
        "uq_reservations_active_booking",
        "reservations",
        ["allowed_email_id", "time_slot_id", "reservation_date"],
        unique=True,
        postgresql_where=sa.text("cancelled_at IS NULL"),
        sqlite_where=sa.text("cancelled_at IS NULL"),
    )

    for table in ("magic_links", "pending_reservations"):
        columns = [
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("email", sa.String(255), nullable=False),
            sa.Column("token", sa.String(64), nullable=False),
        ]
        if table == "pending_reservations":
            columns.append(sa.Column("slots", sa.Text(), nullable=False))
        columns += [
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            _created_at(),
        ]
        op.create_table(table, *columns)
        op.create_index(f"ix_{table}_email", table, ["email"])
        op.create_index(f"ix_{table}_token", table, ["token"], unique=True)

    op.create_table(
        "admins",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        _created_at(),
    )
    op.create_index("ix_admins_email", "admins", ["email"], unique=True)


def downgrade() -> None:
    op.drop_table("admins")
    op.drop_table("pending_reservations")
    op.drop_table("magic_links")
    op.drop_index("uq_reservations_active_booking", table_name="reservations")
    op.drop_table("reservations")
    op.drop_table("time_slots")
    op.drop_table("allowed_emails")
