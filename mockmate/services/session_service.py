"""
Interview session service

Session lifecycle shared by the REST routes and the socket gateway: creation,
the credit-charging start, status transitions, heartbeats, transcript
messages and the interviewer reply.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.cache import cache
from mockmate.core.config import settings
from mockmate.core.exceptions import BadRequestException, ForbiddenException, NotFoundException
from mockmate.crud import credit_transaction_crud, message_crud, resume_crud, session_crud, user_crud
from mockmate.models.base import ensure_aware, utc_now
from mockmate.models.interview import (
    SESSION_TRANSITIONS,
    InterviewMessage,
    InterviewSession,
    InterviewSessionCreate,
    InterviewSessionUpdate,
    SessionStatus,
    can_transition,
)
from mockmate.models.payment import TransactionType
from mockmate.models.user import User
from mockmate.services.alert_service import alert_service
from mockmate.services.analytics_service import analytics_service
from mockmate.services.config_service import config_service
from mockmate.services.interviewer import InterviewerService, get_interviewer

SESSION_STATE_TTL = 24 * 60 * 60
AI_HISTORY_LIMIT = 10


def state_key(session_id: str) -> str:
    return f"session:{session_id}"


def overdue_reason(session: InterviewSession, now: datetime, paused_limit: timedelta) -> Optional[str]:
    """Why a live session should be ended automatically, or None"""
    if session.status == SessionStatus.ACTIVE and session.started_at is not None:
        if ensure_aware(session.started_at) + timedelta(minutes=session.duration) <= now:
            return "duration_exceeded"
    if session.status == SessionStatus.PAUSED and ensure_aware(session.updated_at) + paused_limit <= now:
        return "paused_timeout"
    return None


class SessionService:
    """Interview session operations"""

    def __init__(self, interviewer: Optional[InterviewerService] = None):
        self._interviewer = interviewer

    @property
    def interviewer(self) -> InterviewerService:
        return self._interviewer or get_interviewer()

    # ==================== Lookup ====================

    async def get_owned(self, db: AsyncSession, user: User, session_id: str) -> InterviewSession:
        session = await session_crud.get_owned(db, session_id, user.id)
        if session is None:
            raise NotFoundException("Session not found", code="SESSION_NOT_FOUND")
        return session

    async def cache_state(self, session: InterviewSession) -> None:
        await cache.set(state_key(session.id), {
            "session_id": session.id,
            "user_id": session.user_id,
            "status": session.status,
            "started_at": ensure_aware(session.started_at).isoformat() if session.started_at else None,
            "last_heartbeat": ensure_aware(session.last_heartbeat).isoformat() if session.last_heartbeat else None,
        }, SESSION_STATE_TTL)

    # ==================== Lifecycle ====================

    async def create(self, db: AsyncSession, user: User, data: InterviewSessionCreate) -> InterviewSession:
        if data.resume_id and await resume_crud.get_owned(db, data.resume_id, user.id) is None:
            raise BadRequestException("Resume not found for this user", code="INVALID_RESUME")
        session = await session_crud.create(db, obj_in={
            **data.model_dump(), "user_id": user.id, "status": SessionStatus.CREATED,
        })
        logger.info("Session {} created for user {}", session.id, user.id)
        return session

    async def start(self, db: AsyncSession, user: User, session_id: str) -> Dict[str, Any]:
        """Charge the session cost and activate the session in one commit"""
        session = await self.get_owned(db, user, session_id)
        if session.status != SessionStatus.CREATED:
            raise BadRequestException(
                f"Session cannot be started from status '{session.status}'",
                code="INVALID_SESSION_STATUS",
            )
        cost = await config_service.get_int(db, "session_credit_cost", 1)
        await db.refresh(user)
        if (user.credits or 0) < cost:
            raise ForbiddenException(
                "Insufficient credits", code="INSUFFICIENT_CREDITS",
                data={"required": cost, "current": user.credits},
            )

        try:
            await user_crud.add_credits(db, user, -cost)
            await credit_transaction_crud.record(
                db,
                user_id=user.id,
                transaction_type=TransactionType.USAGE,
                amount=-cost,
                description=f"Interview session: {session.job_title}",
                balance_after=user.credits,
                session_id=session.id,
            )
            await session_crud.set_status(db, session, SessionStatus.ACTIVE)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Session {} started; user {} has {} credits left", session.id, user.id, user.credits)

        await self.cache_state(session)
        await analytics_service.track_interview_session(db, user.id, {
            "session_id": session.id,
            "action": "started",
            "session_type": session.session_type,
            "difficulty": session.difficulty,
        })
        threshold = await config_service.get_int(db, "low_credits_threshold", 2)
        if user.credits <= threshold:
            await alert_service.send_automatic_alert(db, "low_credits", user)

        return {"session": session, "credits_remaining": user.credits, "credits_used": cost}

    async def transition(self, db: AsyncSession, session: InterviewSession, target: str) -> InterviewSession:
        # Repeating pause or resume is a no-op; terminal states accept nothing
        if session.status == target and target in (SessionStatus.ACTIVE, SessionStatus.PAUSED):
            return session
        if not can_transition(session.status, target):
            raise BadRequestException(
                f"Cannot change status from '{session.status}' to '{target}'",
                code="INVALID_STATUS_TRANSITION",
                data={
                    "current_status": session.status,
                    "allowed_transitions": SESSION_TRANSITIONS.get(session.status, []),
                },
            )
        await session_crud.set_status(db, session, target)
        await self.cache_state(session)
        logger.info("Session {} -> {}", session.id, target)
        return session

    async def update(
        self, db: AsyncSession, user: User, session_id: str, data: InterviewSessionUpdate
    ) -> InterviewSession:
        session = await self.get_owned(db, user, session_id)
        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        status = updates.pop("status", None)
        feedback = updates.pop("feedback", None)

        if status is not None:
            await self.transition(db, session, status)
        if feedback is not None:
            session.notes = feedback
        for field, value in updates.items():
            setattr(session, field, value)
        session.updated_at = utc_now()
        await db.flush()

        if status == SessionStatus.COMPLETED:
            await self._on_completed(db, user, session)
        return session

    async def complete(
        self,
        db: AsyncSession,
        user: User,
        session_id: str,
        summary: Optional[Dict[str, Any]] = None,
        feedback: Optional[str] = None,
    ) -> InterviewSession:
        session = await self.get_owned(db, user, session_id)
        if session.status == SessionStatus.COMPLETED:
            raise BadRequestException("Session is already completed", code="SESSION_ALREADY_COMPLETED")
        await self.transition(db, session, SessionStatus.COMPLETED)
        if summary is not None:
            session.session_data = {**(session.session_data or {}), "summary": summary}
        if feedback is not None:
            session.notes = feedback
        await db.flush()
        await self._on_completed(db, user, session)
        return session

    async def _on_completed(self, db: AsyncSession, user: User, session: InterviewSession) -> None:
        await analytics_service.track_interview_session(db, user.id, {
            "session_id": session.id,
            "action": "completed",
            "duration_seconds": self.elapsed_seconds(session),
        })
        await alert_service.send_automatic_alert(
            db, "session_completed", user, job_title=session.job_title, session_id=session.id
        )

    async def expire_overdue(self, db: AsyncSession, now: Optional[datetime] = None) -> List[InterviewSession]:
        """
        Complete live sessions that ran out

        Active sessions end once started_at + duration has passed; paused ones
        end after paused_session_timeout_minutes without a change. The reason
        is kept in session_data and the usual completion side effects run.
        """
        now = now or utc_now()
        paused_limit = timedelta(minutes=settings.paused_session_timeout_minutes)
        ended: List[InterviewSession] = []
        for session in await session_crud.list_live(db):
            reason = overdue_reason(session, now, paused_limit)
            if reason is None:
                continue
            await session_crud.set_status(db, session, SessionStatus.COMPLETED)
            session.session_data = {**(session.session_data or {}), "auto_ended": True, "end_reason": reason}
            await db.flush()
            await self.cache_state(session)
            logger.info("Session {} ended automatically: {}", session.id, reason)

            user = await user_crud.get(db, session.user_id)
            if user is not None:
                await self._on_completed(db, user, session)
            ended.append(session)
        return ended

    async def heartbeat(self, db: AsyncSession, user: User, session_id: str) -> InterviewSession:
        session = await self.get_owned(db, user, session_id)
        session.last_heartbeat = utc_now()
        await db.flush()
        await self.cache_state(session)
        return session

    @staticmethod
    def elapsed_seconds(session: InterviewSession) -> int:
        if session.started_at is None:
            return 0
        end = ensure_aware(session.ended_at) if session.ended_at else utc_now()
        return max(int((end - ensure_aware(session.started_at)).total_seconds()), 0)

    async def status(self, db: AsyncSession, user: User, session_id: str) -> Dict[str, Any]:
        session = await self.get_owned(db, user, session_id)
        elapsed = self.elapsed_seconds(session)
        return {
            "session_id": session.id,
            "status": session.status,
            "started_at": session.started_at,
            "last_heartbeat": session.last_heartbeat,
            "elapsed_seconds": elapsed,
            "remaining_seconds": max(session.duration * 60 - elapsed, 0),
            "message_count": await message_crud.count_for_session(db, session.id),
        }

    async def delete(self, db: AsyncSession, user: User, session_id: str, force: bool = False) -> None:
        session = await self.get_owned(db, user, session_id)
        if session.status != SessionStatus.CREATED and not force:
            raise BadRequestException(
                "Deleting a session that has been started requires force=true",
                code="SESSION_DELETION_REQUIRES_CONFIRMATION",
                data={"status": session.status},
            )
        await session_crud.delete_cascade(db, session)
        await cache.delete(state_key(session_id))
        logger.info("Session {} deleted by user {}", session_id, user.id)

    # ==================== Messages ====================

    async def add_message(
        self,
        db: AsyncSession,
        session: InterviewSession,
        content: str,
        message_type: str = "answer",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> InterviewMessage:
        if session.status != SessionStatus.ACTIVE:
            raise BadRequestException("Session is not active", code="SESSION_NOT_ACTIVE")
        return await message_crud.add(
            db, session_id=session.id, content=content, message_type=message_type, metadata=metadata
        )

    async def ai_history(self, db: AsyncSession, session_id: str) -> List[Dict[str, str]]:
        """Last messages as chat turns: answers are the candidate, everything else the interviewer"""
        messages = await message_crud.list_for_session(db, session_id, limit=AI_HISTORY_LIMIT)
        return [
            {"role": "user" if m.message_type == "answer" else "assistant", "content": m.content}
            for m in messages
        ]

    async def interviewer_reply(
        self, db: AsyncSession, session: InterviewSession, user_message: str
    ) -> InterviewMessage:
        """Generate and store the next interviewer question"""
        history = await self.ai_history(db, session.id)
        resume = None
        if session.resume_id:
            resume = await resume_crud.get(db, session.resume_id)
        reply = await self.interviewer.generate_response(session, history, user_message, resume=resume)
        return await message_crud.add(
            db,
            session_id=session.id,
            content=reply["content"],
            message_type="question",
            metadata=reply["metadata"],
        )


session_service = SessionService()
