"""
Admin user management routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import require_admin
from mockmate.core.database import get_db
from mockmate.core.response import paged_response, success_response
from mockmate.crud import session_crud
from mockmate.models.interview import InterviewSessionResponse
from mockmate.models.user import AdminUserResponse, AdminUserUpdate, CreditAdjustment, User
from mockmate.services.admin_service import admin_service

router = APIRouter()


def admin_user_data(user: User) -> dict:
    return AdminUserResponse.model_validate(user).model_dump()


@router.get("", summary="List users")
async def list_users(
    search: Optional[str] = Query(None, max_length=100),
    role: Optional[str] = Query(None),
    status: Optional[str] = Query(None, description="active / inactive / unverified / locked"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    users, total = await admin_service.list_users(
        db, search=search, role=role, status=status, page=page, page_size=page_size
    )
    return paged_response(
        items=[admin_user_data(u) for u in users], total=total, page=page, page_size=page_size
    )


@router.get("/{user_id}", summary="Get user")
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)):
    detail = await admin_service.user_detail(db, user_id)
    return success_response(data={**detail, "user": admin_user_data(detail["user"])})


@router.put("/{user_id}", summary="Update user")
async def update_user(
    user_id: str,
    data: AdminUserUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await admin_service.update_user(db, user_id, data, admin)
    return success_response(data=admin_user_data(user), message="User updated")


@router.post("/{user_id}/credits", summary="Adjust credits")
async def adjust_credits(
    user_id: str,
    data: CreditAdjustment,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await admin_service.adjust_credits(db, user_id, data.amount, data.reason, admin)
    return success_response(data=result, message="Credits adjusted")


@router.post("/{user_id}/unlock", summary="Unlock user")
async def unlock_user(
    user_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await admin_service.unlock_user(db, user_id, admin)
    return success_response(data=admin_user_data(user), message="Account unlocked")


@router.delete("/{user_id}", summary="Delete user")
async def delete_user(
    user_id: str,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await admin_service.delete_user(db, user_id, admin)
    return success_response(message="User deleted")


@router.get("/{user_id}/sessions", summary="User sessions")
async def user_sessions(
    user_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    user = await admin_service.get_user(db, user_id)
    sessions, total = await session_crud.list_for_user(db, user.id, page=page, page_size=page_size)
    return paged_response(
        items=[InterviewSessionResponse.model_validate(s).model_dump() for s in sessions],
        total=total, page=page, page_size=page_size,
    )
