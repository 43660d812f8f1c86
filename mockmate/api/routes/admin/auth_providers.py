"""
Admin authentication provider routes
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import require_admin
from mockmate.core.database import get_db
from mockmate.core.response import success_response
from mockmate.models.auth_provider import AuthProviderCreate, AuthProviderSecrets, AuthProviderUpdate
from mockmate.models.user import User
from mockmate.services.auth_provider_service import auth_provider_service

router = APIRouter()


@router.get("", summary="List auth providers")
async def list_providers(db: AsyncSession = Depends(get_db)):
    providers = await auth_provider_service.list_providers(db)
    return success_response(data=[auth_provider_service.serialize(p) for p in providers])


@router.get("/enabled", summary="Enabled auth providers")
async def enabled_providers(db: AsyncSession = Depends(get_db)):
    providers = await auth_provider_service.list_providers(db, enabled_only=True)
    return success_response(data=[auth_provider_service.serialize(p) for p in providers])


@router.get("/stats", summary="Auth provider statistics")
async def provider_stats(db: AsyncSession = Depends(get_db)):
    return success_response(data=await auth_provider_service.stats(db))


@router.post("", status_code=201, summary="Create auth provider")
async def create_provider(
    data: AuthProviderCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    provider = await auth_provider_service.create(db, data, updated_by=admin.id)
    return success_response(
        data=auth_provider_service.serialize(provider), message="Provider created", code=201
    )


@router.get("/{provider_id}", summary="Get auth provider")
async def get_provider(provider_id: str, db: AsyncSession = Depends(get_db)):
    provider = await auth_provider_service.get(db, provider_id)
    return success_response(data=auth_provider_service.serialize(provider))


@router.put("/{provider_id}", summary="Update auth provider")
async def update_provider(
    provider_id: str,
    data: AuthProviderUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    provider = await auth_provider_service.update(db, provider_id, data, updated_by=admin.id)
    return success_response(data=auth_provider_service.serialize(provider), message="Provider updated")


@router.delete("/{provider_id}", summary="Delete auth provider")
async def delete_provider(provider_id: str, db: AsyncSession = Depends(get_db)):
    await auth_provider_service.delete(db, provider_id)
    return success_response(message="Provider deleted")


@router.post("/{provider_id}/enable", summary="Enable auth provider")
async def enable_provider(
    provider_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    provider = await auth_provider_service.set_enabled(db, provider_id, True, updated_by=admin.id)
    return success_response(data=auth_provider_service.serialize(provider), message="Provider enabled")


@router.post("/{provider_id}/disable", summary="Disable auth provider")
async def disable_provider(
    provider_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    provider = await auth_provider_service.set_enabled(db, provider_id, False, updated_by=admin.id)
    return success_response(data=auth_provider_service.serialize(provider), message="Provider disabled")


@router.put("/{provider_id}/secrets", summary="Set provider secrets")
async def set_secrets(
    provider_id: str,
    data: AuthProviderSecrets,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Secrets are stored encrypted and never returned
    """
    provider = await auth_provider_service.set_secrets(db, provider_id, data.secrets, updated_by=admin.id)
    return success_response(
        data={"provider_id": provider.provider_id, "has_secrets": True, "keys": sorted(data.secrets)},
        message="Secrets updated",
    )


@router.get("/{provider_id}/client-config", summary="Public client configuration")
async def client_config(provider_id: str, db: AsyncSession = Depends(get_db)):
    return success_response(data=await auth_provider_service.client_config(db, provider_id))


@router.post("/{provider_id}/test", summary="Check provider configuration")
async def test_provider(provider_id: str, db: AsyncSession = Depends(get_db)):
    provider = await auth_provider_service.get(db, provider_id)
    return success_response(data=auth_provider_service.check(provider))
