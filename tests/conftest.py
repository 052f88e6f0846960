# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pytest fixtures. Tests run against a temporary SQLite file through aiosqlite."""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.pop("SMTP_HOST", None)

from datetime import date, datetime, timezone  # noqa: E402
from typing import Any  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from slotify_server.database import build_engine, build_session_maker, get_db, get_session_maker, init_db  # noqa: E402
from slotify_server.models import AllowedEmail, TimeSlot  # noqa: E402
from slotify_server.rate_limit import limiter  # noqa: E402
from slotify_server.services.calendar import get_clock  # noqa: E402
from slotify_server.services.email import EmailResult, EmailSender, TemplateKind, get_email_sender  # noqa: E402

# Monday 2024-06-03, 10:00 in Paris
NOW = datetime(2024, 6, 3, 8, 0, tzinfo=timezone.utc)
WEDNESDAY = date(2024, 6, 5)

ALICE = "alice@example.com"
BOB = "bob@example.com"
CAROL = "carol@example.com"


class RecordingEmailSender(EmailSender):
    """Keeps sent emails in memory. Set ``fail`` to simulate a delivery failure."""

    def __init__(self):
        self.sent: list[tuple[TemplateKind, str, dict[str, Any]]] = []
        self.fail = False

    async def send(self, kind: TemplateKind, recipient: str, payload: dict[str, Any]) -> EmailResult:
        if self.fail:
            return EmailResult(success=False, error="smtp down")
        self.sent.append((kind, recipient, payload))
        return EmailResult(success=True)

    def of_kind(self, kind: TemplateKind) -> list[tuple[TemplateKind, str, dict[str, Any]]]:
        return [item for item in self.sent if item[0] is kind]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    limiter.store.reset()
    yield
    limiter.store.reset()


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'slotify.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def sender():
    return RecordingEmailSender()


@pytest.fixture
async def allowed(session_maker):
    """Allow-list ALICE, BOB and CAROL."""
    async with session_maker() as session:
        session.add_all([AllowedEmail(email=e) for e in (ALICE, BOB, CAROL)])
        await session.commit()


@pytest.fixture
def make_slot(session_maker):
    """Factory: insert a slot and return its id. Defaults to Wednesday 10:00-11:00, capacity 2."""

    async def _make(
        day_of_week: int = 3,
        start_time: str = "10:00",
        end_time: str = "11:00",
        max_capacity: int = 2,
        is_active: bool = True,
    ) -> int:
        async with session_maker() as session:
            slot = TimeSlot(
                day_of_week=day_of_week,
                start_time=start_time,
                end_time=end_time,
                max_capacity=max_capacity,
                is_active=is_active,
            )
            session.add(slot)
            await session.commit()
            return slot.id

    return _make


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
async def client(session_maker, sender, clock):
    from slotify_server.main import app

    async def _get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_maker] = lambda: session_maker
    app.dependency_overrides[get_email_sender] = lambda: sender
    app.dependency_overrides[get_clock] = lambda: clock
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
