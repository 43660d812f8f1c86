"""
Email template and delivery log CRUD
"""
from typing import Dict, List, Optional, Tuple
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.models.email import EmailTemplate, EmailLog
from .base import CRUDBase


class CRUDEmailTemplate(CRUDBase[EmailTemplate]):
    """Email template override CRUD"""

    async def get_by_name(self, db: AsyncSession, name: str) -> Optional[EmailTemplate]:
        result = await db.execute(select(self.model).where(self.model.name == name))
        return result.scalar_one_or_none()

    async def list_all(self, db: AsyncSession) -> List[EmailTemplate]:
        result = await db.execute(select(self.model).order_by(self.model.name))
        return list(result.scalars().all())


class CRUDEmailLog(CRUDBase[EmailLog]):
    """Email delivery log CRUD"""

    async def list_filtered(
        self,
        db: AsyncSession,
        *,
        status: Optional[str] = None,
        template_name: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[EmailLog], int]:
        conditions = []
        if status:
            conditions.append(self.model.status == status)
        if template_name:
            conditions.append(self.model.template_name == template_name)
        return await self.paginate(db, conditions=conditions, page=page, page_size=page_size)

    async def count_by_status(self, db: AsyncSession) -> Dict[str, int]:
        result = await db.execute(
            select(self.model.status, func.count()).group_by(self.model.status)
        )
        return {status: count for status, count in result.all()}


email_template_crud = CRUDEmailTemplate(EmailTemplate)
email_log_crud = CRUDEmailLog(EmailLog)
