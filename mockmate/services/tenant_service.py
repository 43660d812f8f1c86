"""
Tenant service

Tenant lifecycle, memberships, API keys and limit checks.
"""
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.exceptions import BadRequestException, ConflictException, NotFoundException
from mockmate.core.security import hash_token
from mockmate.crud import api_key_crud, session_crud, tenant_crud, tenant_user_crud, user_crud
from mockmate.models.base import ensure_aware, utc_now
from mockmate.models.tenant import (
    DEFAULT_FEATURES,
    DEFAULT_LIMITS,
    ApiKeyCreate,
    Tenant,
    TenantApiKey,
    TenantCreate,
    TenantUpdate,
    TenantUser,
)


def generate_api_key(tenant_slug: str) -> str:
    """`<first 4 chars of the slug>_<64 hex chars>`"""
    return f"{tenant_slug[:4]}_{secrets.token_hex(32)}"


class TenantService:
    """Tenant operations"""

    # ==================== Tenants ====================

    async def get_tenant(self, db: AsyncSession, ref: str) -> Tenant:
        tenant = await tenant_crud.get_by_ref(db, ref)
        if tenant is None:
            raise NotFoundException("Tenant not found", code="TENANT_NOT_FOUND")
        return tenant

    async def list_tenants(
        self,
        db: AsyncSession,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Tenant], int]:
        return await tenant_crud.list_filtered(
            db, status=status, search=search, page=page, page_size=page_size
        )

    async def create_tenant(
        self, db: AsyncSession, data: TenantCreate, created_by: Optional[str] = None
    ) -> Tenant:
        if await tenant_crud.get_by_slug(db, data.tenant_id) is not None:
            raise ConflictException(f"Tenant '{data.tenant_id}' already exists", code="TENANT_EXISTS")
        payload = data.model_dump()
        payload["features"] = {**DEFAULT_FEATURES, **(payload.get("features") or {})}
        payload["limits"] = {**DEFAULT_LIMITS, **(payload.get("limits") or {})}
        tenant = await tenant_crud.create(db, obj_in={**payload, "created_by": created_by})
        logger.info("Tenant {} created by {}", tenant.tenant_id, created_by or "system")
        return tenant

    async def update_tenant(self, db: AsyncSession, ref: str, data: TenantUpdate) -> Tenant:
        tenant = await self.get_tenant(db, ref)
        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        if "limits" in updates:
            updates["limits"] = {**(tenant.limits or {}), **updates["limits"]}
        if "features" in updates:
            updates["features"] = {**(tenant.features or {}), **updates["features"]}
        tenant = await tenant_crud.update(db, db_obj=tenant, obj_in=updates)
        logger.info("Tenant {} updated: {}", tenant.tenant_id, ", ".join(sorted(updates)))
        return tenant

    async def delete_tenant(self, db: AsyncSession, ref: str) -> None:
        tenant = await self.get_tenant(db, ref)
        members = await tenant_user_crud.count_for_tenant(db, tenant.id)
        if members:
            raise BadRequestException(
                "Cannot delete a tenant that still has users", code="TENANT_HAS_USERS",
                data={"users": members},
            )
        await api_key_crud.delete_where(db, TenantApiKey.tenant_id == tenant.id)
        await tenant_crud.delete(db, id=tenant.id)
        logger.info("Tenant {} deleted", tenant.tenant_id)

    async def get_tenant_by_domain(self, db: AsyncSession, domain: str) -> Tenant:
        tenant = await tenant_crud.get_by_host(db, domain)
        if tenant is None:
            raise NotFoundException("No tenant for this domain", code="TENANT_NOT_FOUND")
        return tenant

    # ==================== Limits ====================

    @staticmethod
    def check_tenant_limits(tenant: Tenant, limit_type: str, usage: int) -> Dict[str, Any]:
        """Whether one more unit fits under a named limit; unset limits always allow"""
        limit = tenant.limit(limit_type)
        if not limit:
            return {"allowed": True, "limit": None, "usage": usage, "remaining": None}
        allowed = usage < limit
        return {
            "allowed": allowed,
            "limit": limit,
            "usage": usage,
            "remaining": limit - usage if allowed else 0,
        }

    async def limits_report(self, db: AsyncSession, ref: str) -> Dict[str, Any]:
        tenant = await self.get_tenant(db, ref)
        usage = await self._usage(db, tenant)
        return {
            "tenant_id": tenant.tenant_id,
            "limits": {
                "maxUsers": self.check_tenant_limits(tenant, "maxUsers", usage["users"]),
                "maxApiKeys": self.check_tenant_limits(tenant, "maxApiKeys", usage["api_keys"]),
                "maxSessionsPerMonth": self.check_tenant_limits(
                    tenant, "maxSessionsPerMonth", usage["sessions_this_month"]
                ),
            },
        }

    async def _usage(self, db: AsyncSession, tenant: Tenant) -> Dict[str, int]:
        now = utc_now()
        month_start = datetime(now.year, now.month, 1, tzinfo=now.tzinfo)
        member_ids = await tenant_user_crud.user_ids(db, tenant.id)
        return {
            "users": len(member_ids),
            "api_keys": await api_key_crud.count_active(db, tenant.id),
            "sessions_this_month": (
                await session_crud.count_since(db, month_start, member_ids) if member_ids else 0
            ),
        }

    # ==================== Users ====================

    async def add_user(self, db: AsyncSession, ref: str, user_id: str, role: str = "member") -> TenantUser:
        tenant = await self.get_tenant(db, ref)
        user = await user_crud.get(db, user_id)
        if user is None or user.deleted_at is not None:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")
        if await tenant_user_crud.get_membership(db, tenant.id, user_id) is not None:
            raise ConflictException("User already belongs to this tenant", code="TENANT_USER_EXISTS")

        check = self.check_tenant_limits(
            tenant, "maxUsers", await tenant_user_crud.count_for_tenant(db, tenant.id)
        )
        if not check["allowed"]:
            raise BadRequestException("Tenant user limit reached", code="TENANT_LIMIT_EXCEEDED", data=check)

        membership = await tenant_user_crud.create(
            db, obj_in={"tenant_id": tenant.id, "user_id": user_id, "role": role}
        )
        if user.tenant_id is None:
            user.tenant_id = tenant.id
            await db.flush()
        logger.info("User {} added to tenant {} as {}", user_id, tenant.tenant_id, role)
        return membership

    async def remove_user(self, db: AsyncSession, ref: str, user_id: str) -> None:
        tenant = await self.get_tenant(db, ref)
        membership = await tenant_user_crud.get_membership(db, tenant.id, user_id)
        if membership is None:
            raise NotFoundException("User is not a member of this tenant", code="TENANT_USER_NOT_FOUND")
        await tenant_user_crud.delete(db, id=membership.id)
        user = await user_crud.get(db, user_id)
        if user is not None and user.tenant_id == tenant.id:
            user.tenant_id = None
            await db.flush()
        logger.info("User {} removed from tenant {}", user_id, tenant.tenant_id)

    async def list_users(self, db: AsyncSession, ref: str) -> List[Dict[str, Any]]:
        tenant = await self.get_tenant(db, ref)
        memberships = await tenant_user_crud.list_for_tenant(db, tenant.id)
        users = {}
        for membership in memberships:
            user = await user_crud.get(db, membership.user_id)
            if user is not None:
                users[membership.user_id] = user
        return [
            {
                "user_id": m.user_id,
                "email": users[m.user_id].email,
                "first_name": users[m.user_id].first_name,
                "last_name": users[m.user_id].last_name,
                "role": m.role,
                "joined_at": m.joined_at,
            }
            for m in memberships if m.user_id in users
        ]

    async def get_tenant_user_tenants(self, db: AsyncSession, user_id: str) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(Tenant, TenantUser.role)
            .join(TenantUser, TenantUser.tenant_id == Tenant.id)
            .where(TenantUser.user_id == user_id)
            .order_by(Tenant.name)
        )
        return [
            {"id": tenant.id, "tenant_id": tenant.tenant_id, "name": tenant.name,
             "status": tenant.status, "role": role}
            for tenant, role in result.all()
        ]

    # ==================== API keys ====================

    async def create_api_key(
        self, db: AsyncSession, ref: str, data: ApiKeyCreate, created_by: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a key; the raw value is only ever returned here"""
        tenant = await self.get_tenant(db, ref)
        check = self.check_tenant_limits(
            tenant, "maxApiKeys", await api_key_crud.count_active(db, tenant.id)
        )
        if not check["allowed"]:
            raise BadRequestException("Tenant API key limit reached", code="TENANT_LIMIT_EXCEEDED", data=check)

        raw_key = generate_api_key(tenant.tenant_id)
        expires_at = utc_now() + timedelta(days=data.expires_in_days) if data.expires_in_days else None
        key = await api_key_crud.create(db, obj_in={
            "tenant_id": tenant.id,
            "name": data.name,
            "key_hash": hash_token(raw_key),
            "key_prefix": raw_key[:8],
            "permissions": data.permissions,
            "expires_at": expires_at,
            "created_by": created_by,
        })
        logger.info("API key {} ({}) created for tenant {}", key.id, key.key_prefix, tenant.tenant_id)
        return {"key": key, "api_key": raw_key}

    async def list_api_keys(self, db: AsyncSession, ref: str) -> List[TenantApiKey]:
        tenant = await self.get_tenant(db, ref)
        return await api_key_crud.list_for_tenant(db, tenant.id)

    async def revoke_api_key(self, db: AsyncSession, ref: str, key_id: str) -> TenantApiKey:
        tenant = await self.get_tenant(db, ref)
        key = await api_key_crud.get_for_tenant(db, key_id, tenant.id)
        if key is None:
            raise NotFoundException("API key not found", code="API_KEY_NOT_FOUND")
        key.is_active = False
        await db.flush()
        logger.info("API key {} revoked for tenant {}", key.id, tenant.tenant_id)
        return key

    async def validate_api_key(self, db: AsyncSession, raw_key: str) -> Optional[Tuple[Tenant, TenantApiKey]]:
        """Tenant and key for a raw API key, or None when the key is unusable"""
        if not raw_key:
            return None
        key = await api_key_crud.get_by_hash(db, hash_token(raw_key))
        if key is None or not key.is_active:
            return None
        if key.expires_at is not None and ensure_aware(key.expires_at) <= utc_now():
            return None
        tenant = await tenant_crud.get(db, key.tenant_id)
        if tenant is None or not tenant.is_active:
            return None
        key.last_used_at = utc_now()
        await db.flush()
        return tenant, key

    # ==================== Statistics ====================

    async def stats(self, db: AsyncSession, ref: Optional[str] = None) -> Dict[str, Any]:
        """Usage for one tenant, or totals across tenants"""
        if ref is not None:
            tenant = await self.get_tenant(db, ref)
            usage = await self._usage(db, tenant)
            limits = {**DEFAULT_LIMITS, **(tenant.limits or {})}
            return {
                "tenant_id": tenant.tenant_id,
                **usage,
                "limits": limits,
                "user_limit_usage": round(usage["users"] / limits["maxUsers"] * 100, 2)
                if limits.get("maxUsers") else None,
                "api_key_limit_usage": round(usage["api_keys"] / limits["maxApiKeys"] * 100, 2)
                if limits.get("maxApiKeys") else None,
            }

        by_status = {}
        for status in ("active", "suspended", "inactive"):
            by_status[status] = await tenant_crud.count(db, Tenant.status == status)
        return {
            "total_tenants": sum(by_status.values()),
            "by_status": by_status,
            "total_memberships": await tenant_user_crud.count(db),
            "active_api_keys": await api_key_crud.count(db, TenantApiKey.is_active == True),
        }


tenant_service = TenantService()
