# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Email sending service. Logs to console when SMTP not configured."""

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from datetime import date
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from enum import Enum
from typing import Any

from slotify_server.config import settings

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


class TemplateKind(str, Enum):
    SINGLE_RESERVATION_CONFIRMATION = "single-reservation-confirmation"
    BULK_RESERVATION_CONFIRMATION = "bulk-reservation-confirmation"
    MAGIC_LINK = "magic-link"


@dataclass(frozen=True)
class EmailResult:
    success: bool
    error: str | None = None


def _base_url() -> str:
    return (settings.app_base_url or "http://localhost:3000").rstrip("/")


def cancel_url() -> str:
    return f"{_base_url()}/cancel"


def magic_link_url(token: str) -> str:
    return f"{_base_url()}/my-reservations/dashboard?token={token}"


def format_day(day: date) -> str:
    return f"{WEEKDAY_NAMES[day.weekday()]} {day.day} {day.strftime('%B')}"


def wrap_body_html(plain_body: str) -> str:
    """Wrap plain text body in minimal HTML."""
    body_escaped = plain_body.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace("\n", "<br>\n")
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: system-ui, sans-serif; color: #333; max-width: 600px;">
<div style="white-space: pre-wrap;">{body_escaped}</div>
</body>
</html>"""


def render(kind: TemplateKind, payload: dict[str, Any]) -> tuple[str, str]:
    """Return (subject, plain body) for a template kind.

    Payloads:
      single: {"date", "start_time", "end_time", "cancellation_code"}
      bulk: {"reservations": [single payload, ...]}
      magic-link: {"token", "ttl_label"}
    """
    if kind is TemplateKind.SINGLE_RESERVATION_CONFIRMATION:
        body = (
            "Your study room reservation is confirmed.\n\n"
            f"Date: {format_day(payload['date'])}\n"
            f"Time: {payload['start_time']} - {payload['end_time']}\n"
            f"Cancellation code: {payload['cancellation_code']}\n\n"
            "If you can no longer come, please cancel to free the place for other students "
            "(at least 24 hours before the slot starts):\n"
            f"{cancel_url()}"
        )
        return "Your Slotify reservation is confirmed", body
    if kind is TemplateKind.BULK_RESERVATION_CONFIRMATION:
        items = payload["reservations"]
        lines = [
            f"- {format_day(r['date'])}, {r['start_time']} - {r['end_time']}, code {r['cancellation_code']}"
            for r in items
        ]
        body = (
            f"Your {len(items)} study room reservations are confirmed.\n\n"
            + "\n".join(lines)
            + "\n\nEach reservation is cancelled with its own code:\n"
            f"{cancel_url()}"
        )
        return f"Your {len(items)} Slotify reservations are confirmed", body
    if kind is TemplateKind.MAGIC_LINK:
        body = (
            "Use the link below to see and manage your reservations:\n\n"
            f"{magic_link_url(payload['token'])}\n\n"
            f"This link is valid for {payload.get('ttl_label', '1 hour')}.\n"
            "If you did not request this email, you can ignore it."
        )
        return "Access your Slotify reservations", body
    raise ValueError(f"Unknown template kind: {kind}")


def _deliver(to: str, subject: str, body: str) -> None:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.smtp_from
    msg["To"] = to
    msg.attach(MIMEText(body, "plain"))
    msg.attach(MIMEText(wrap_body_html(body), "html"))
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
        server.starttls()
        server.login(settings.smtp_user, settings.smtp_password or "")
        server.sendmail(settings.smtp_from, [to], msg.as_string())


async def send_email(to: str, subject: str, body: str) -> EmailResult:
    """Send an email (plain and HTML). Logs to console if SMTP not configured."""
    if settings.smtp_host and settings.smtp_user:
        try:
            await asyncio.to_thread(_deliver, to, subject, body)
        except (smtplib.SMTPException, OSError) as e:
            logger.exception("Failed to send email to %s: %s", to, e)
            return EmailResult(success=False, error=str(e))
    else:
        logger.info("Email (SMTP not configured): To=%s Subject=%s Body=%s", to, subject, body[:200])
    return EmailResult(success=True)


class EmailSender:
    """Transactional email dispatch consumed by the booking and token operations."""

    async def send(self, kind: TemplateKind, recipient: str, payload: dict[str, Any]) -> EmailResult:
        subject, body = render(kind, payload)
        result = await send_email(recipient, subject, body)
        if not result.success:
            logger.warning("Email %s to %s failed: %s", kind.value, recipient, result.error)
        return result


email_sender = EmailSender()


def get_email_sender() -> EmailSender:
    """Dependency: the process-wide email sender."""
    return email_sender
