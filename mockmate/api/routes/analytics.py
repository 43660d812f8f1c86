"""
User activity tracking route
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import get_current_user
from mockmate.core.database import get_db
from mockmate.core.response import success_response
from mockmate.models.analytics import TrackActivityRequest
from mockmate.models.user import User
from mockmate.services.analytics_service import analytics_service

router = APIRouter()


@router.post("/track", summary="Track user activity")
async def track_activity(
    data: TrackActivityRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    activity = await analytics_service.track_user_activity(
        db, user.id, data.action_type, data.details, request
    )
    return success_response(
        data={"tracked": activity is not None, "action_type": data.action_type},
        message="Activity tracked",
    )
