"""
Public configuration API routes
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.config import settings
from mockmate.core.database import get_db
from mockmate.core.response import success_response
from mockmate.services.config_service import config_service

router = APIRouter()


@router.get("", summary="Public configuration")
async def public_config(db: AsyncSession = Depends(get_db)):
    """
    Public, non-sensitive configuration values for the client
    """
    values = await config_service.get_public(db)
    values.setdefault("app_name", settings.app_name)
    return success_response(data=values)


@router.get("/feature-flags", summary="Feature flags")
async def feature_flags(db: AsyncSession = Depends(get_db)):
    flags = await config_service.get(db, "feature_flags", {})
    maintenance = await config_service.get(db, "maintenance_mode", False)
    return success_response(data={
        "feature_flags": flags if isinstance(flags, dict) else {},
        "maintenance_mode": bool(maintenance),
    })


@router.get("/{category}", summary="Public configuration by category")
async def category_config(category: str, db: AsyncSession = Depends(get_db)):
    entries = await config_service.get_by_category(db, category)
    values = {
        entry["key"]: entry["value"]
        for entry in entries
        if entry["is_public"] and not entry["is_sensitive"]
    }
    return success_response(data={"category": category, "values": values})
