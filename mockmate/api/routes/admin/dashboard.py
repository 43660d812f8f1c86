"""
Admin dashboard and system status routes
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.database import get_db
from mockmate.core.response import success_response
from mockmate.services.admin_service import admin_service

router = APIRouter()


@router.get("/dashboard", summary="Admin dashboard")
async def dashboard(db: AsyncSession = Depends(get_db)):
    """
    Users, sessions, revenue, credits and socket connections at a glance
    """
    return success_response(data=await admin_service.dashboard(db))


@router.get("/dashboard/activity", summary="Recent activity")
async def dashboard_activity(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    return success_response(data=await admin_service.recent_activity(db, limit))


@router.get("/system/status", summary="System status")
async def system_status(db: AsyncSession = Depends(get_db)):
    return success_response(data=await admin_service.system_status(db))
