"""
Email verification API routes
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import get_current_user, require_admin
from mockmate.core.database import get_db
from mockmate.core.rate_limit import admin_limit, verification_resend_limit
from mockmate.core.response import success_response
from mockmate.models.user import User, UserResponse
from mockmate.models.verification import ResendVerificationRequest, VerifyEmailRequest
from mockmate.services.verification_service import verification_service

router = APIRouter()

RESEND_MESSAGE = "If an unverified account exists for this email, a verification link has been sent"


@router.post("/verify", summary="Verify email")
async def verify_email(
    data: VerifyEmailRequest,
    db: AsyncSession = Depends(get_db),
):
    result = await verification_service.verify(db, data.token)
    user = UserResponse.model_validate(result["user"]).model_dump()
    if result["already_verified"]:
        return success_response(
            data={"already_verified": True, "user": user},
            message="Email is already verified",
        )
    return success_response(
        data={"already_verified": False, "user": user},
        message="Email verified successfully",
    )


@router.post(
    "/resend",
    summary="Resend verification email",
    dependencies=[Depends(verification_resend_limit)],
)
async def resend_verification(
    data: ResendVerificationRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Unknown addresses get the same answer as real ones
    """
    result = await verification_service.resend(db, data.email)
    if result.get("already_verified"):
        return success_response(data={"already_verified": True}, message="Email is already verified")
    return success_response(data={"already_verified": False}, message=RESEND_MESSAGE)


@router.get("/status", summary="Verification status")
async def verification_status(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return success_response(data=await verification_service.status(db, user))


# ==================== Admin ====================

@router.get("/stats", summary="Verification statistics", dependencies=[Depends(admin_limit)])
async def verification_stats(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return success_response(data=await verification_service.stats(db))


@router.post("/cleanup", summary="Remove expired tokens", dependencies=[Depends(admin_limit)])
async def verification_cleanup(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    removed = await verification_service.cleanup(db)
    return success_response(data={"removed": removed}, message=f"Removed {removed} tokens")
