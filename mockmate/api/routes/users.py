"""
User profile API routes
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import get_current_user
from mockmate.core.database import get_db
from mockmate.core.response import success_response
from mockmate.crud import credit_transaction_crud
from mockmate.models.payment import CreditTransactionResponse
from mockmate.models.user import PasswordChange, ProfileUpdate, User, UserResponse
from mockmate.services.auth_service import auth_service

router = APIRouter()


@router.get("/profile", summary="Get profile")
async def get_profile(user: User = Depends(get_current_user)):
    return success_response(data=UserResponse.model_validate(user).model_dump())


@router.put("/profile", summary="Update profile")
async def update_profile(
    data: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Update name and email; a new email must be verified again
    """
    result = await auth_service.update_profile(db, user, data)
    message = (
        "Profile updated. Please verify your new email address."
        if result["email_verification_required"] else "Profile updated"
    )
    return success_response(data=result, message=message)


@router.post("/change-password", summary="Change password")
async def change_password(
    data: PasswordChange,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await auth_service.change_password(db, user, data.current_password, data.new_password)
    return success_response(
        data={"requires_relogin": True},
        message="Password changed. Please log in again.",
    )


@router.delete("/profile", summary="Delete account")
async def delete_account(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Soft delete: the account is deactivated and its tokens are revoked
    """
    await auth_service.delete_account(db, user)
    return success_response(message="Account deleted")


@router.get("/credits", summary="Credit balance and history")
async def get_credits(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    transactions, total = await credit_transaction_crud.list_for_user(
        db, user.id, page=page, page_size=page_size
    )
    return success_response(data={
        "credits": user.credits,
        "transactions": [
            CreditTransactionResponse.model_validate(t).model_dump() for t in transactions
        ],
        "total": total,
        "page": page,
        "page_size": page_size,
        "pages": (total + page_size - 1) // page_size,
    })
