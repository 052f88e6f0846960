# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Email templates and the SMTP-less fallback."""

from datetime import date

import pytest

from slotify_server.services.email import EmailSender, TemplateKind, render, send_email, wrap_body_html

pytestmark = pytest.mark.anyio

RESERVATION = {"date": date(2024, 6, 5), "start_time": "10:00", "end_time": "11:00", "cancellation_code": "AB12CD34"}


def test_single_confirmation_carries_code():
    subject, body = render(TemplateKind.SINGLE_RESERVATION_CONFIRMATION, RESERVATION)
    assert "confirmed" in subject
    assert "Wednesday 5 June" in body
    assert "AB12CD34" in body


def test_bulk_confirmation_lists_every_reservation():
    second = dict(RESERVATION, start_time="11:00", end_time="12:00", cancellation_code="ZZ99YY88")
    subject, body = render(TemplateKind.BULK_RESERVATION_CONFIRMATION, {"reservations": [RESERVATION, second]})
    assert subject.startswith("Your 2")
    assert "AB12CD34" in body and "ZZ99YY88" in body


def test_magic_link_points_to_dashboard():
    _, body = render(TemplateKind.MAGIC_LINK, {"token": "f" * 64, "ttl_label": "1 hour"})
    assert "/my-reservations/dashboard?token=" + "f" * 64 in body


def test_html_body_is_escaped():
    assert "&lt;b&gt;" in wrap_body_html("<b>")


async def test_send_without_smtp_reports_success():
    """Without SMTP settings the email is logged and counted as sent."""
    result = await send_email("alice@example.com", "Hello", "Body")
    assert result.success
    assert result.error is None


async def test_sender_renders_and_sends():
    result = await EmailSender().send(TemplateKind.MAGIC_LINK, "alice@example.com", {"token": "0" * 64})
    assert result.success
