"""
Interview session and message CRUD
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import select, func, delete as sa_delete
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.models.base import utc_now
from mockmate.models.interview import InterviewSession, InterviewMessage, SessionStatus
from mockmate.models.payment import CreditTransaction
from .base import CRUDBase


class CRUDInterviewSession(CRUDBase[InterviewSession]):
    """Interview session CRUD"""

    async def get_owned(
        self, db: AsyncSession, session_id: str, user_id: str
    ) -> Optional[InterviewSession]:
        """Session belonging to the given user"""
        result = await db.execute(
            select(self.model).where(
                self.model.id == session_id, self.model.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: Optional[str],
        *,
        status: Optional[str] = None,
        session_type: Optional[str] = None,
        difficulty: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        page_size: int = 10,
    ) -> Tuple[List[InterviewSession], int]:
        """Filtered, sorted page of sessions; user_id None lists everyone (admin)"""
        conditions = []
        if user_id is not None:
            conditions.append(self.model.user_id == user_id)
        if status:
            conditions.append(self.model.status == status)
        if session_type:
            conditions.append(self.model.session_type == session_type)
        if difficulty:
            conditions.append(self.model.difficulty == difficulty)

        column = getattr(self.model, sort_by)
        order = column.asc() if sort_order == "asc" else column.desc()
        return await self.paginate(
            db, conditions=conditions, page=page, page_size=page_size, order_by=order
        )

    async def set_status(
        self, db: AsyncSession, session: InterviewSession, status: str
    ) -> InterviewSession:
        """Apply a status change and its timestamps"""
        now = utc_now()
        session.status = status
        if status == SessionStatus.ACTIVE and session.started_at is None:
            session.started_at = now
        if status in (SessionStatus.COMPLETED, SessionStatus.CANCELLED) and session.ended_at is None:
            session.ended_at = now
        session.updated_at = now
        await db.flush()
        return session

    async def list_live(self, db: AsyncSession) -> List[InterviewSession]:
        """Active and paused sessions"""
        result = await db.execute(
            select(self.model).where(self.model.status.in_((SessionStatus.ACTIVE, SessionStatus.PAUSED)))
        )
        return list(result.scalars().all())

    async def count_by_status(
        self, db: AsyncSession, user_id: Optional[str] = None
    ) -> Dict[str, int]:
        query = select(self.model.status, func.count()).group_by(self.model.status)
        if user_id is not None:
            query = query.where(self.model.user_id == user_id)
        result = await db.execute(query)
        counts = {status: 0 for status in SessionStatus.ALL}
        counts.update({status: count for status, count in result.all()})
        return counts

    async def count_since(self, db: AsyncSession, since: datetime, tenant_user_ids: Optional[List[str]] = None) -> int:
        conditions = [self.model.created_at >= since]
        if tenant_user_ids is not None:
            if not tenant_user_ids:
                return 0
            conditions.append(self.model.user_id.in_(tenant_user_ids))
        return await self.count(db, *conditions)

    async def delete_cascade(self, db: AsyncSession, session: InterviewSession) -> None:
        """Delete a session with its messages and credit transactions"""
        await message_crud.delete_where(db, InterviewMessage.session_id == session.id)
        await db.execute(
            sa_delete(CreditTransaction).where(CreditTransaction.session_id == session.id)
        )
        await db.delete(session)
        await db.flush()


class CRUDInterviewMessage(CRUDBase[InterviewMessage]):
    """Transcript message CRUD"""

    async def add(
        self,
        db: AsyncSession,
        *,
        session_id: str,
        content: str,
        message_type: str = "answer",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> InterviewMessage:
        return await self.create(db, obj_in={
            "session_id": session_id,
            "content": content,
            "message_type": message_type,
            "message_metadata": metadata or {},
        })

    async def list_for_session(
        self, db: AsyncSession, session_id: str, limit: Optional[int] = None
    ) -> List[InterviewMessage]:
        """Messages in chronological order; with a limit, the latest N"""
        if limit is None:
            result = await db.execute(
                select(self.model)
                .where(self.model.session_id == session_id)
                .order_by(self.model.timestamp.asc())
            )
            return list(result.scalars().all())

        result = await db.execute(
            select(self.model)
            .where(self.model.session_id == session_id)
            .order_by(self.model.timestamp.desc())
            .limit(limit)
        )
        return list(reversed(result.scalars().all()))

    async def count_for_session(self, db: AsyncSession, session_id: str) -> int:
        return await self.count(db, self.model.session_id == session_id)


session_crud = CRUDInterviewSession(InterviewSession)
message_crud = CRUDInterviewMessage(InterviewMessage)
