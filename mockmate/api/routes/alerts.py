"""
User alert API routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import get_current_user
from mockmate.core.database import get_db
from mockmate.core.response import success_response
from mockmate.models.user import User
from mockmate.services.alert_service import alert_service

router = APIRouter()


@router.get("", summary="List my alerts")
async def list_alerts(
    include_read: bool = Query(True),
    limit: Optional[int] = Query(None, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Visible alerts, critical first then newest
    """
    alerts = await alert_service.visible_alerts(db, user, include_read=include_read, limit=limit)
    return success_response(data={
        "alerts": alerts,
        "unread_count": await alert_service.unread_count(db, user),
    })


@router.get("/count", summary="Unread alert count")
async def alert_count(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success_response(data={"count": await alert_service.unread_count(db, user)})


@router.get("/{alert_id}", summary="Get alert")
async def get_alert(
    alert_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success_response(data=await alert_service.get_for_user(db, user, alert_id))


@router.put("/{alert_id}/read", summary="Mark alert read")
async def mark_read(
    alert_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await alert_service.mark_read(db, user, alert_id)
    return success_response(data=result, message="Alert marked as read")


@router.put("/{alert_id}/dismiss", summary="Dismiss alert")
async def dismiss(
    alert_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await alert_service.dismiss(db, user, alert_id)
    return success_response(data=result, message="Alert dismissed")
