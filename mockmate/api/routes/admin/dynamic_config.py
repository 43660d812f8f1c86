"""
Admin dynamic configuration routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import require_admin
from mockmate.core.database import get_db
from mockmate.core.response import success_response
from mockmate.models.config import ConfigCreate, ConfigUpdate
from mockmate.models.user import User
from mockmate.services.config_service import config_service

router = APIRouter()


@router.get("", summary="List configuration")
async def list_config(
    category: Optional[str] = Query(None),
    include_sensitive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    entries = await config_service.get_by_category(db, category, include_sensitive)
    return success_response(data=entries)


@router.get("/categories", summary="Configuration categories")
async def config_categories(db: AsyncSession = Depends(get_db)):
    return success_response(data=await config_service.get_categories(db))


@router.get("/stats", summary="Configuration cache statistics")
async def config_stats(db: AsyncSession = Depends(get_db)):
    return success_response(data=await config_service.get_stats(db))


@router.post("/reload", summary="Reload configuration")
async def reload_config():
    config_service.reload()
    return success_response(data={"reloaded": True}, message="Configuration cache cleared")


@router.post("", status_code=201, summary="Create configuration key")
async def create_config(
    data: ConfigCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    entry = await config_service.create(db, data, updated_by=admin.id)
    return success_response(data=entry, message="Configuration created", code=201)


@router.get("/{key}", summary="Get configuration key")
async def get_config(
    key: str,
    include_sensitive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    return success_response(data=await config_service.get_entry(db, key, include_sensitive))


@router.put("/{key}", summary="Update configuration key")
async def update_config(
    key: str,
    data: ConfigUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    entry = await config_service.set(db, key, data.value, updated_by=admin.id)
    return success_response(data=entry, message="Configuration updated")
