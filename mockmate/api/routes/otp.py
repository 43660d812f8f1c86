"""
OTP API routes

Signed-in users generate and verify codes by type. The email-keyed routes
serve accounts that cannot sign in yet: unverified addresses and forgotten
passwords.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import get_current_user, require_admin
from mockmate.core.database import get_db
from mockmate.core.exceptions import BadRequestException
from mockmate.core.rate_limit import admin_limit, otp_limit, otp_send_limit, otp_verify_limit
from mockmate.core.response import success_response
from mockmate.models.user import User, UserResponse
from mockmate.models.verification import (
    OTP_TYPES,
    OTPEmailRequest,
    OTPEmailVerifyRequest,
    OTPGenerateRequest,
    OTPPasswordResetRequest,
    OTPVerifyRequest,
)
from mockmate.services.auth_service import auth_service
from mockmate.services.otp_service import otp_service
from mockmate.services.verification_service import verification_service

router = APIRouter()

SEND_CODE_MESSAGE = "If an unverified account exists for this email, a verification code has been sent"


@router.post("/generate", summary="Generate OTP", dependencies=[Depends(otp_limit)])
async def generate_otp(
    data: OTPGenerateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Issue a 6-digit code for the current user and email it

    Any earlier code of the same type is replaced.
    """
    result = await otp_service.create_otp(db, user, data.otp_type)
    return success_response(data=result, message="Verification code sent")


@router.post("/verify", summary="Verify OTP")
async def verify_otp(
    data: OTPVerifyRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await otp_service.consume(db, user.id, data.otp_type, data.otp_code)
    return success_response(data={"verified": True, "otp_type": data.otp_type}, message="Code verified")


@router.post("/resend", summary="Resend OTP", dependencies=[Depends(otp_limit)])
async def resend_otp(
    data: OTPGenerateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await otp_service.create_otp(db, user, data.otp_type)
    return success_response(data=result, message="A new verification code has been sent")


@router.get("/status/{otp_type}", summary="OTP status")
async def otp_status(
    otp_type: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if otp_type not in OTP_TYPES:
        raise BadRequestException(
            f"otp_type must be one of {', '.join(OTP_TYPES)}", code="INVALID_OTP_TYPE"
        )
    return success_response(data=await otp_service.status(db, user.id, otp_type))


# ==================== Email-keyed flows ====================

@router.post("/send-email-verification", summary="Send email verification code", dependencies=[Depends(otp_send_limit)])
async def send_email_verification_code(
    data: OTPEmailRequest,
    db: AsyncSession = Depends(get_db),
):
    result = await verification_service.send_code(db, data.email)
    if result.get("already_verified"):
        return success_response(data={"already_verified": True}, message="Email is already verified")
    return success_response(data={"already_verified": False}, message=SEND_CODE_MESSAGE)


@router.post("/verify-email", summary="Verify email with code", dependencies=[Depends(otp_verify_limit)])
async def verify_email_with_code(
    data: OTPEmailVerifyRequest,
    db: AsyncSession = Depends(get_db),
):
    result = await verification_service.verify_code(db, data.email, data.otp_code)
    user = UserResponse.model_validate(result["user"]).model_dump()
    return success_response(data={"verified": True, "user": user}, message="Email verified successfully")


@router.post("/send-password-reset", summary="Send password reset code", dependencies=[Depends(otp_send_limit)])
async def send_password_reset_code(
    data: OTPEmailRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Unknown addresses get the same answer as real ones
    """
    message = await auth_service.request_password_reset_code(db, data.email)
    return success_response(message=message)


@router.post("/reset-password", summary="Reset password with code", dependencies=[Depends(otp_verify_limit)])
async def reset_password_with_code(
    data: OTPPasswordResetRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Sets the new password, clears any lockout and signs out every device
    """
    await auth_service.reset_password_with_code(db, data.email, data.otp_code, data.new_password)
    return success_response(message="Password reset successfully")


# ==================== Admin ====================

@router.get("/admin/stats", summary="OTP statistics", dependencies=[Depends(admin_limit)])
async def otp_stats(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return success_response(data=await otp_service.stats(db))


@router.post("/admin/cleanup", summary="Remove expired OTPs", dependencies=[Depends(admin_limit)])
async def otp_cleanup(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    removed = await otp_service.cleanup(db)
    return success_response(data={"removed": removed}, message=f"Removed {removed} codes")
