"""
Admin alert routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import require_admin
from mockmate.core.database import get_db
from mockmate.core.response import paged_response, success_response
from mockmate.crud import alert_crud
from mockmate.models.alert import AlertCreate, AlertUpdate
from mockmate.models.user import User
from mockmate.services.alert_service import alert_service, serialize_alert

router = APIRouter()


@router.get("", summary="List alerts")
async def list_alerts(
    alert_type: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    target_type: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="active / expired / scheduled / inactive"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    alerts, total = await alert_crud.list_filtered(
        db, alert_type=alert_type, priority=priority, target_type=target_type,
        status=status, page=page, page_size=page_size,
    )
    return paged_response(
        items=[serialize_alert(a) for a in alerts], total=total, page=page, page_size=page_size
    )


@router.get("/templates", summary="Alert templates")
async def alert_templates():
    return success_response(data=alert_service.templates())


@router.post("/cleanup", summary="Remove old alerts")
async def cleanup_alerts(
    days: int = Query(30, ge=1, le=3650),
    db: AsyncSession = Depends(get_db),
):
    removed = await alert_service.cleanup(db, days)
    return success_response(data={"removed": removed}, message=f"Removed {removed} alerts")


@router.post("", status_code=201, summary="Create alert")
async def create_alert(
    data: AlertCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Create an alert and push it to the connected users it targets
    """
    alert = await alert_service.create_alert(db, data, created_by=admin.id)
    return success_response(data=serialize_alert(alert), message="Alert created", code=201)


@router.get("/{alert_id}/analytics", summary="Alert analytics")
async def alert_analytics(alert_id: str, db: AsyncSession = Depends(get_db)):
    return success_response(data=await alert_service.analytics(db, alert_id))


@router.put("/{alert_id}", summary="Update alert")
async def update_alert(
    alert_id: str,
    data: AlertUpdate,
    db: AsyncSession = Depends(get_db),
):
    alert = await alert_service.update_alert(db, alert_id, data)
    return success_response(data=serialize_alert(alert), message="Alert updated")


@router.delete("/{alert_id}", summary="Delete alert")
async def delete_alert(alert_id: str, db: AsyncSession = Depends(get_db)):
    await alert_service.delete_alert(db, alert_id)
    return success_response(message="Alert deleted")
