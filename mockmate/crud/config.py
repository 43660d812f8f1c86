"""
System configuration CRUD
"""
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.models.config import SystemConfig
from .base import CRUDBase


class CRUDSystemConfig(CRUDBase[SystemConfig]):
    """System configuration CRUD"""

    async def get_by_key(self, db: AsyncSession, key: str) -> Optional[SystemConfig]:
        result = await db.execute(select(self.model).where(self.model.config_key == key))
        return result.scalar_one_or_none()

    async def list_all(
        self,
        db: AsyncSession,
        *,
        category: Optional[str] = None,
        public_only: bool = False,
    ) -> List[SystemConfig]:
        query = select(self.model)
        if category:
            query = query.where(self.model.category == category)
        if public_only:
            query = query.where(self.model.is_public == True)
        result = await db.execute(query.order_by(self.model.category, self.model.config_key))
        return list(result.scalars().all())

    async def categories(self, db: AsyncSession) -> List[str]:
        result = await db.execute(
            select(self.model.category).distinct().order_by(self.model.category)
        )
        return [row[0] for row in result.all()]


config_crud = CRUDSystemConfig(SystemConfig)
