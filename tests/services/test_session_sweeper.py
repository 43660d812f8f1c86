"""
Overdue session sweep tests
"""
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.models.alert import Alert
from mockmate.models.base import utc_now
from mockmate.models.interview import InterviewSession
from mockmate.models.user import User
from mockmate.services.session_service import session_service
from mockmate.services.session_sweeper import SessionSweeper
from tests.conftest import DataFactory, TestSessionLocal


@pytest.mark.asyncio
async def test_expire_overdue(db_session: AsyncSession, factory: DataFactory, user: User):
    now = utc_now()
    overdue = await factory.create_session(user, status="active", duration=30, started_at=now - timedelta(minutes=45))
    running = await factory.create_session(user, status="active", duration=30, started_at=now - timedelta(minutes=10))
    idle = await factory.create_session(user, status="paused", updated_at=now - timedelta(hours=2))
    paused = await factory.create_session(user, status="paused")
    created = await factory.create_session(user)

    ended = await session_service.expire_overdue(db_session, now=now)
    await db_session.commit()
    assert {s.id for s in ended} == {overdue.id, idle.id}

    stored = await factory.get(InterviewSession, overdue.id)
    assert stored.status == "completed"
    assert stored.ended_at is not None
    assert stored.session_data == {"auto_ended": True, "end_reason": "duration_exceeded"}
    assert (await factory.get(InterviewSession, idle.id)).session_data["end_reason"] == "paused_timeout"

    for session, status in ((running, "active"), (paused, "paused"), (created, "created")):
        assert (await factory.get(InterviewSession, session.id)).status == status

    alerts = await db_session.scalar(
        select(func.count()).select_from(Alert).where(Alert.source == "session_completed")
    )
    assert alerts == 2


@pytest.mark.asyncio
async def test_sweeper_run_once(db_session: AsyncSession, factory: DataFactory, user: User):
    session = await factory.create_session(
        user, status="active", duration=5, started_at=utc_now() - timedelta(minutes=6)
    )
    sweeper = SessionSweeper(session_factory=TestSessionLocal, interval=60)

    assert await sweeper.run_once() == 1
    assert (await factory.get(InterviewSession, session.id)).status == "completed"
    assert await sweeper.run_once() == 0


@pytest.mark.asyncio
async def test_sweeper_start_and_stop():
    disabled = SessionSweeper(session_factory=TestSessionLocal, interval=0)
    disabled.start()
    assert disabled.running is False

    sweeper = SessionSweeper(session_factory=TestSessionLocal, interval=3600)
    sweeper.start()
    assert sweeper.running is True
    await sweeper.stop()
    assert sweeper.running is False
