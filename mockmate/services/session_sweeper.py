"""
Overdue session sweeper

Periodic task started with the application. Each pass ends the sessions
SessionService.expire_overdue selects and tells their rooms.
"""
import asyncio
from typing import Callable, Optional

from loguru import logger

from mockmate.core.config import settings
from mockmate.core.database import AsyncSessionLocal
from mockmate.realtime.server import hub, socket_timestamp
from .session_service import SessionService, session_service


class SessionSweeper:
    """Runs expire_overdue every `interval` seconds"""

    def __init__(
        self,
        session_factory: Callable = AsyncSessionLocal,
        sessions: Optional[SessionService] = None,
        interval: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.sessions = sessions or session_service
        self.interval = settings.session_sweep_interval_seconds if interval is None else interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        async with self.session_factory() as db:
            try:
                ended = await self.sessions.expire_overdue(db)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        for session in ended:
            await hub.emit_to_session(session.id, "session_status_changed", {
                "session_id": session.id,
                "status": session.status,
                "changed_by": "system",
                "reason": session.session_data.get("end_reason"),
                "timestamp": socket_timestamp(),
            })
        if ended:
            logger.info("Session sweep ended {} sessions", len(ended))
        return len(ended)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.run_once()
            except Exception as exc:
                logger.error("Session sweep failed: {}", exc)

    def start(self) -> None:
        if self.interval <= 0:
            logger.info("Session sweeper disabled")
            return
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("Session sweeper started (every {}s)", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Session sweeper stopped")


session_sweeper = SessionSweeper()
