"""
Admin analytics routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.database import get_db
from mockmate.core.response import paged_response, success_response
from mockmate.crud import activity_crud
from mockmate.models.analytics import UserActivityResponse
from mockmate.services.analytics_service import analytics_service

router = APIRouter()


@router.get("/dashboard", summary="Analytics dashboard")
async def analytics_dashboard(
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    return success_response(data=await analytics_service.get_dashboard_analytics(db, days))


@router.get("/realtime", summary="Realtime activity")
async def realtime(db: AsyncSession = Depends(get_db)):
    return success_response(data=await analytics_service.get_realtime(db))


@router.get("/activities", summary="User activities")
async def activities(
    user_id: Optional[str] = Query(None),
    action_type: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await activity_crud.list_filtered(
        db, user_id=user_id, action_type=action_type, page=page, page_size=page_size
    )
    return paged_response(
        items=[UserActivityResponse.model_validate(r).model_dump() for r in rows],
        total=total, page=page, page_size=page_size,
    )


@router.post("/cleanup", summary="Remove old analytics rows")
async def cleanup(
    days: int = Query(365, ge=1, le=3650),
    db: AsyncSession = Depends(get_db),
):
    removed = await analytics_service.cleanup_old_data(db, days)
    return success_response(data=removed, message="Analytics cleanup complete")
