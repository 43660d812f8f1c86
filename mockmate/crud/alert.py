"""
Alert CRUD
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from sqlalchemy import select, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.models.base import utc_now
from mockmate.models.alert import Alert, AlertRecipient
from .base import CRUDBase


class CRUDAlert(CRUDBase[Alert]):
    """Alert CRUD"""

    async def get_current(self, db: AsyncSession, now: Optional[datetime] = None) -> List[Alert]:
        """Active alerts inside their display window, newest first"""
        now = now or utc_now()
        result = await db.execute(
            select(self.model)
            .where(
                self.model.is_active == True,
                self.model.starts_at <= now,
                or_(self.model.expires_at.is_(None), self.model.expires_at > now),
            )
            .order_by(self.model.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_filtered(
        self,
        db: AsyncSession,
        *,
        alert_type: Optional[str] = None,
        priority: Optional[str] = None,
        target_type: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Alert], int]:
        """Admin listing; status is active / expired / scheduled / inactive"""
        now = utc_now()
        conditions = []
        if alert_type:
            conditions.append(self.model.alert_type == alert_type)
        if priority:
            conditions.append(self.model.priority == priority)
        if target_type:
            conditions.append(self.model.target_type == target_type)
        if status == "active":
            conditions.extend([
                self.model.is_active == True,
                self.model.starts_at <= now,
                or_(self.model.expires_at.is_(None), self.model.expires_at > now),
            ])
        elif status == "expired":
            conditions.append(and_(self.model.expires_at.is_not(None), self.model.expires_at <= now))
        elif status == "scheduled":
            conditions.extend([self.model.is_active == True, self.model.starts_at > now])
        elif status == "inactive":
            conditions.append(self.model.is_active == False)
        return await self.paginate(db, conditions=conditions, page=page, page_size=page_size)

    async def delete_expired_before(self, db: AsyncSession, days: int) -> int:
        """Delete alerts that expired more than `days` ago"""
        cutoff = utc_now() - timedelta(days=days)
        stale = await db.execute(
            select(self.model.id).where(
                self.model.expires_at.is_not(None), self.model.expires_at < cutoff
            )
        )
        ids = [row[0] for row in stale.all()]
        if not ids:
            return 0
        await recipient_crud.delete_where(db, AlertRecipient.alert_id.in_(ids))
        return await self.delete_where(db, self.model.id.in_(ids))

    async def delete_cascade(self, db: AsyncSession, alert: Alert) -> None:
        await recipient_crud.delete_where(db, AlertRecipient.alert_id == alert.id)
        await db.delete(alert)
        await db.flush()


class CRUDAlertRecipient(CRUDBase[AlertRecipient]):
    """Per-user alert state"""

    async def get_for(self, db: AsyncSession, alert_id: str, user_id: str) -> Optional[AlertRecipient]:
        result = await db.execute(
            select(self.model).where(
                self.model.alert_id == alert_id, self.model.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, db: AsyncSession, alert_id: str, user_id: str) -> AlertRecipient:
        recipient = await self.get_for(db, alert_id, user_id)
        if recipient is None:
            recipient = await self.create(db, obj_in={"alert_id": alert_id, "user_id": user_id})
        return recipient

    async def states_for_user(
        self, db: AsyncSession, user_id: str, alert_ids: List[str]
    ) -> Dict[str, AlertRecipient]:
        if not alert_ids:
            return {}
        result = await db.execute(
            select(self.model).where(
                self.model.user_id == user_id, self.model.alert_id.in_(alert_ids)
            )
        )
        return {r.alert_id: r for r in result.scalars().all()}

    async def stats_for_alert(self, db: AsyncSession, alert_id: str) -> Dict[str, int]:
        result = await db.execute(
            select(
                func.count(),
                func.count(self.model.read_at),
                func.count(self.model.dismissed_at),
            ).where(self.model.alert_id == alert_id)
        )
        total, read, dismissed = result.one()
        return {"recipients": total or 0, "read": read or 0, "dismissed": dismissed or 0}


alert_crud = CRUDAlert(Alert)
recipient_crud = CRUDAlertRecipient(AlertRecipient)
