"""
Tenant, membership and API key CRUD
"""
from typing import List, Optional, Tuple
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.models.tenant import Tenant, TenantUser, TenantApiKey
from .base import CRUDBase


class CRUDTenant(CRUDBase[Tenant]):
    """Tenant CRUD"""

    async def get_by_slug(self, db: AsyncSession, tenant_id: str) -> Optional[Tenant]:
        result = await db.execute(select(self.model).where(self.model.tenant_id == tenant_id))
        return result.scalar_one_or_none()

    async def get_by_ref(self, db: AsyncSession, ref: str) -> Optional[Tenant]:
        """Look up by primary key or slug"""
        result = await db.execute(
            select(self.model).where(or_(self.model.id == ref, self.model.tenant_id == ref))
        )
        return result.scalars().first()

    async def get_by_host(self, db: AsyncSession, host: str) -> Optional[Tenant]:
        """Resolve a tenant from a request host (custom domain or subdomain)"""
        host = host.split(":")[0].lower()
        subdomain = host.split(".")[0]
        result = await db.execute(
            select(self.model).where(
                or_(self.model.domain == host, self.model.subdomain == subdomain)
            )
        )
        return result.scalars().first()

    async def list_filtered(
        self,
        db: AsyncSession,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Tenant], int]:
        conditions = []
        if status:
            conditions.append(self.model.status == status)
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(
                self.model.name.ilike(pattern),
                self.model.tenant_id.ilike(pattern),
                self.model.domain.ilike(pattern),
            ))
        return await self.paginate(db, conditions=conditions, page=page, page_size=page_size)


class CRUDTenantUser(CRUDBase[TenantUser]):
    """Tenant membership CRUD"""

    async def get_membership(self, db: AsyncSession, tenant_id: str, user_id: str) -> Optional[TenantUser]:
        result = await db.execute(
            select(self.model).where(
                self.model.tenant_id == tenant_id, self.model.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def list_for_tenant(self, db: AsyncSession, tenant_id: str) -> List[TenantUser]:
        result = await db.execute(
            select(self.model)
            .where(self.model.tenant_id == tenant_id)
            .order_by(self.model.joined_at.asc())
        )
        return list(result.scalars().all())

    async def user_ids(self, db: AsyncSession, tenant_id: str) -> List[str]:
        result = await db.execute(
            select(self.model.user_id).where(self.model.tenant_id == tenant_id)
        )
        return [row[0] for row in result.all()]

    async def count_for_tenant(self, db: AsyncSession, tenant_id: str) -> int:
        return await self.count(db, self.model.tenant_id == tenant_id)


class CRUDTenantApiKey(CRUDBase[TenantApiKey]):
    """Tenant API key CRUD"""

    async def get_by_hash(self, db: AsyncSession, key_hash: str) -> Optional[TenantApiKey]:
        result = await db.execute(select(self.model).where(self.model.key_hash == key_hash))
        return result.scalar_one_or_none()

    async def get_for_tenant(self, db: AsyncSession, key_id: str, tenant_id: str) -> Optional[TenantApiKey]:
        result = await db.execute(
            select(self.model).where(self.model.id == key_id, self.model.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()

    async def list_for_tenant(self, db: AsyncSession, tenant_id: str) -> List[TenantApiKey]:
        result = await db.execute(
            select(self.model)
            .where(self.model.tenant_id == tenant_id)
            .order_by(self.model.created_at.desc())
        )
        return list(result.scalars().all())

    async def count_active(self, db: AsyncSession, tenant_id: str) -> int:
        return await self.count(
            db, self.model.tenant_id == tenant_id, self.model.is_active == True
        )


tenant_crud = CRUDTenant(Tenant)
tenant_user_crud = CRUDTenantUser(TenantUser)
api_key_crud = CRUDTenantApiKey(TenantApiKey)
