"""
Admin tenant routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import require_admin
from mockmate.core.database import get_db
from mockmate.core.exceptions import UnauthorizedException
from mockmate.core.response import paged_response, success_response
from mockmate.models.tenant import (
    ApiKeyCreate,
    ApiKeyResponse,
    ApiKeyValidate,
    TenantCreate,
    TenantResponse,
    TenantUpdate,
    TenantUserAdd,
)
from mockmate.models.user import User
from mockmate.services.tenant_service import tenant_service

router = APIRouter()


def tenant_data(tenant) -> dict:
    return TenantResponse.model_validate(tenant).model_dump()


def api_key_data(key) -> dict:
    return ApiKeyResponse.model_validate(key).model_dump()


@router.get("", summary="List tenants")
async def list_tenants(
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    tenants, total = await tenant_service.list_tenants(
        db, status=status, search=search, page=page, page_size=page_size
    )
    return paged_response(
        items=[tenant_data(t) for t in tenants], total=total, page=page, page_size=page_size
    )


@router.post("", status_code=201, summary="Create tenant")
async def create_tenant(
    data: TenantCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    tenant = await tenant_service.create_tenant(db, data, created_by=admin.id)
    return success_response(data=tenant_data(tenant), message="Tenant created", code=201)


@router.get("/stats", summary="Tenant statistics")
async def tenants_stats(db: AsyncSession = Depends(get_db)):
    return success_response(data=await tenant_service.stats(db))


@router.get("/by-domain/{domain}", summary="Find tenant by domain")
async def tenant_by_domain(domain: str, db: AsyncSession = Depends(get_db)):
    tenant = await tenant_service.get_tenant_by_domain(db, domain)
    return success_response(data=tenant_data(tenant))


@router.post("/api-keys/validate", summary="Validate API key")
async def validate_api_key(data: ApiKeyValidate, db: AsyncSession = Depends(get_db)):
    """
    Check a raw tenant key; unknown, revoked or expired keys are rejected with 401
    """
    result = await tenant_service.validate_api_key(db, data.api_key)
    if result is None:
        raise UnauthorizedException("Invalid or expired API key", code="INVALID_API_KEY")
    tenant, key = result
    return success_response(data={
        "valid": True,
        "tenant": tenant_data(tenant),
        "key": api_key_data(key),
    })


@router.get("/users/{user_id}/tenants", summary="Tenants of a user")
async def user_tenants(user_id: str, db: AsyncSession = Depends(get_db)):
    return success_response(data=await tenant_service.get_tenant_user_tenants(db, user_id))


@router.get("/{tenant_ref}", summary="Get tenant")
async def get_tenant(tenant_ref: str, db: AsyncSession = Depends(get_db)):
    tenant = await tenant_service.get_tenant(db, tenant_ref)
    return success_response(data=tenant_data(tenant))


@router.put("/{tenant_ref}", summary="Update tenant")
async def update_tenant(
    tenant_ref: str,
    data: TenantUpdate,
    db: AsyncSession = Depends(get_db),
):
    tenant = await tenant_service.update_tenant(db, tenant_ref, data)
    return success_response(data=tenant_data(tenant), message="Tenant updated")


@router.delete("/{tenant_ref}", summary="Delete tenant")
async def delete_tenant(tenant_ref: str, db: AsyncSession = Depends(get_db)):
    await tenant_service.delete_tenant(db, tenant_ref)
    return success_response(message="Tenant deleted")


@router.get("/{tenant_ref}/stats", summary="Tenant usage")
async def tenant_stats(tenant_ref: str, db: AsyncSession = Depends(get_db)):
    return success_response(data=await tenant_service.stats(db, tenant_ref))


@router.get("/{tenant_ref}/limits", summary="Tenant limits")
async def tenant_limits(tenant_ref: str, db: AsyncSession = Depends(get_db)):
    return success_response(data=await tenant_service.limits_report(db, tenant_ref))


# ==================== Members ====================

@router.get("/{tenant_ref}/users", summary="List tenant users")
async def list_tenant_users(tenant_ref: str, db: AsyncSession = Depends(get_db)):
    return success_response(data=await tenant_service.list_users(db, tenant_ref))


@router.post("/{tenant_ref}/users", status_code=201, summary="Add tenant user")
async def add_tenant_user(
    tenant_ref: str,
    data: TenantUserAdd,
    db: AsyncSession = Depends(get_db),
):
    membership = await tenant_service.add_user(db, tenant_ref, data.user_id, data.role)
    return success_response(
        data={
            "id": membership.id,
            "tenant_id": membership.tenant_id,
            "user_id": membership.user_id,
            "role": membership.role,
        },
        message="User added to tenant",
        code=201,
    )


@router.delete("/{tenant_ref}/users/{user_id}", summary="Remove tenant user")
async def remove_tenant_user(
    tenant_ref: str,
    user_id: str,
    db: AsyncSession = Depends(get_db),
):
    await tenant_service.remove_user(db, tenant_ref, user_id)
    return success_response(message="User removed from tenant")


# ==================== API keys ====================

@router.get("/{tenant_ref}/api-keys", summary="List API keys")
async def list_api_keys(tenant_ref: str, db: AsyncSession = Depends(get_db)):
    keys = await tenant_service.list_api_keys(db, tenant_ref)
    return success_response(data=[api_key_data(k) for k in keys])


@router.post("/{tenant_ref}/api-keys", status_code=201, summary="Create API key")
async def create_api_key(
    tenant_ref: str,
    data: ApiKeyCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    The raw key is only returned here; store it now
    """
    result = await tenant_service.create_api_key(db, tenant_ref, data, created_by=admin.id)
    return success_response(
        data={**api_key_data(result["key"]), "api_key": result["api_key"]},
        message="API key created",
        code=201,
    )


@router.delete("/{tenant_ref}/api-keys/{key_id}", summary="Revoke API key")
async def revoke_api_key(
    tenant_ref: str,
    key_id: str,
    db: AsyncSession = Depends(get_db),
):
    key = await tenant_service.revoke_api_key(db, tenant_ref, key_id)
    return success_response(data=api_key_data(key), message="API key revoked")
