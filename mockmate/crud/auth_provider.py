"""
Auth provider and security rules CRUD
"""
from typing import List, Optional
from sqlalchemy import select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.models.auth_provider import AuthProviderConfig, RulesTemplate, RulesDeployment
from .base import CRUDBase


class CRUDAuthProvider(CRUDBase[AuthProviderConfig]):
    """Auth provider CRUD"""

    async def get_by_provider_id(self, db: AsyncSession, provider_id: str) -> Optional[AuthProviderConfig]:
        result = await db.execute(
            select(self.model).where(self.model.provider_id == provider_id)
        )
        return result.scalar_one_or_none()

    async def list_all(self, db: AsyncSession, *, enabled_only: bool = False) -> List[AuthProviderConfig]:
        query = select(self.model)
        if enabled_only:
            query = query.where(self.model.is_enabled == True)
        result = await db.execute(query.order_by(self.model.provider_name))
        return list(result.scalars().all())


class CRUDRulesTemplate(CRUDBase[RulesTemplate]):
    """Rules template CRUD"""

    async def get_by_name(self, db: AsyncSession, name: str) -> Optional[RulesTemplate]:
        result = await db.execute(select(self.model).where(self.model.name == name))
        return result.scalar_one_or_none()

    async def list_all(self, db: AsyncSession, *, category: Optional[str] = None) -> List[RulesTemplate]:
        query = select(self.model)
        if category:
            query = query.where(self.model.category == category)
        result = await db.execute(
            query.order_by(self.model.is_default.desc(), self.model.name)
        )
        return list(result.scalars().all())

    async def clear_default(self, db: AsyncSession) -> None:
        await db.execute(sa_update(self.model).values(is_default=False))


class CRUDRulesDeployment(CRUDBase[RulesDeployment]):
    """Rules deployment history CRUD"""

    async def history(self, db: AsyncSession, *, limit: int = 50) -> List[RulesDeployment]:
        result = await db.execute(
            select(self.model).order_by(self.model.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())


auth_provider_crud = CRUDAuthProvider(AuthProviderConfig)
rules_template_crud = CRUDRulesTemplate(RulesTemplate)
rules_deployment_crud = CRUDRulesDeployment(RulesDeployment)
