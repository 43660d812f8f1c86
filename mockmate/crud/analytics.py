"""
Activity and page-visit CRUD
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.models.analytics import UserActivity, PageVisit
from .base import CRUDBase


class CRUDUserActivity(CRUDBase[UserActivity]):
    """User activity CRUD"""

    async def list_filtered(
        self,
        db: AsyncSession,
        *,
        user_id: Optional[str] = None,
        action_type: Optional[str] = None,
        since: Optional[datetime] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[UserActivity], int]:
        conditions = []
        if user_id:
            conditions.append(self.model.user_id == user_id)
        if action_type:
            conditions.append(self.model.action_type == action_type)
        if since is not None:
            conditions.append(self.model.created_at >= since)
        return await self.paginate(db, conditions=conditions, page=page, page_size=page_size)

    async def count_by_action(self, db: AsyncSession, since: datetime) -> Dict[str, int]:
        result = await db.execute(
            select(self.model.action_type, func.count())
            .where(self.model.created_at >= since)
            .group_by(self.model.action_type)
            .order_by(func.count().desc())
        )
        return {action: count for action, count in result.all()}

    async def active_users(self, db: AsyncSession, since: datetime) -> int:
        result = await db.execute(
            select(func.count(func.distinct(self.model.user_id))).where(
                self.model.created_at >= since, self.model.user_id.is_not(None)
            )
        )
        return result.scalar() or 0


class CRUDPageVisit(CRUDBase[PageVisit]):
    """Page visit CRUD"""

    async def record(self, db: AsyncSession, **fields: Any) -> PageVisit:
        return await self.create(db, obj_in=fields)

    async def top_paths(self, db: AsyncSession, since: datetime, limit: int = 10) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(self.model.path, func.count().label("visits"))
            .where(self.model.created_at >= since)
            .group_by(self.model.path)
            .order_by(func.count().desc())
            .limit(limit)
        )
        return [{"path": path, "visits": visits} for path, visits in result.all()]

    async def summary(self, db: AsyncSession, since: datetime) -> Dict[str, int]:
        result = await db.execute(
            select(
                func.count(),
                func.count(func.distinct(self.model.ip_address)),
                func.count(func.distinct(self.model.user_id)),
            ).where(self.model.created_at >= since)
        )
        visits, unique_ips, unique_users = result.one()
        return {
            "visits": visits or 0,
            "unique_visitors": unique_ips or 0,
            "unique_users": unique_users or 0,
        }


activity_crud = CRUDUserActivity(UserActivity)
page_visit_crud = CRUDPageVisit(PageVisit)
