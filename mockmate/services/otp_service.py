"""
One-time code service

6-digit codes stored per (user, type). A new code replaces the previous one;
verification counts wrong guesses against max_attempts.
"""
import hmac
from datetime import timedelta
from typing import Any, Dict

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.exceptions import BadRequestException
from mockmate.core.security import generate_numeric_code
from mockmate.crud import otp_crud
from mockmate.models.base import utc_now, ensure_aware
from mockmate.models.user import User
from .config_service import config_service
from .email_service import email_service

CODE_LENGTH = 6
EMAIL_VERIFICATION_EXPIRY_MINUTES = 30


class OTPService:
    """OTP generation and verification"""

    async def expiry_minutes(self, db: AsyncSession, otp_type: str) -> int:
        if otp_type == "email_verification":
            return EMAIL_VERIFICATION_EXPIRY_MINUTES
        return await config_service.get_int(db, "otp_expiry_minutes", 15)

    async def create_otp(self, db: AsyncSession, user: User, otp_type: str) -> Dict[str, Any]:
        """Issue a fresh code (replacing any existing one) and email it"""
        minutes = await self.expiry_minutes(db, otp_type)
        max_attempts = await config_service.get_int(db, "max_otp_attempts", 5)
        code = generate_numeric_code(CODE_LENGTH)
        otp = await otp_crud.replace(
            db,
            user_id=user.id,
            email=user.email,
            otp_type=otp_type,
            code=code,
            expires_at=utc_now() + timedelta(minutes=minutes),
            max_attempts=max_attempts,
        )
        email_result = await email_service.send_otp_email(db, user, code, otp_type, minutes)
        logger.info("OTP {} issued for user {}", otp_type, user.id)
        return {
            "otp_type": otp_type,
            "expires_at": ensure_aware(otp.expires_at).isoformat(),
            "expires_in_minutes": minutes,
            "email_sent": email_result.get("success", False),
        }

    async def verify_otp(
        self, db: AsyncSession, user_id: str, otp_type: str, code: str
    ) -> Dict[str, Any]:
        """
        Check a code

        Returns {"success": True} or {"success": False, "code": <reason>, ...}.
        """
        otp = await otp_crud.get_active(db, user_id, otp_type)
        if otp is None:
            return {"success": False, "code": "OTP_NOT_FOUND", "message": "No active code found"}

        now = utc_now()
        if ensure_aware(otp.expires_at) <= now:
            otp.is_used = True
            otp.used_at = now
            await db.flush()
            return {"success": False, "code": "OTP_EXPIRED", "message": "The code has expired"}

        if otp.attempts >= otp.max_attempts:
            return {
                "success": False,
                "code": "MAX_ATTEMPTS_EXCEEDED",
                "message": "Maximum verification attempts exceeded",
            }

        if not hmac.compare_digest(otp.otp_code.encode(), code.encode()):
            otp.attempts += 1
            await db.flush()
            return {
                "success": False,
                "code": "INVALID_OTP",
                "message": "Invalid code",
                "attempts_remaining": max(0, otp.max_attempts - otp.attempts),
            }

        otp.is_used = True
        otp.used_at = now
        await db.flush()
        return {"success": True, "message": "Code verified"}

    async def consume(self, db: AsyncSession, user_id: str, otp_type: str, code: str) -> None:
        """verify_otp that raises on failure, committing the attempt count first"""
        result = await self.verify_otp(db, user_id, otp_type, code)
        if result["success"]:
            return
        await db.commit()
        extra = {k: v for k, v in result.items() if k == "attempts_remaining"}
        raise BadRequestException(result["message"], code=result["code"], data=extra or None)

    async def status(self, db: AsyncSession, user_id: str, otp_type: str) -> Dict[str, Any]:
        otp = await otp_crud.get_active(db, user_id, otp_type)
        if otp is None:
            return {"otp_type": otp_type, "has_active_otp": False}
        expires_at = ensure_aware(otp.expires_at)
        return {
            "otp_type": otp_type,
            "has_active_otp": expires_at > utc_now(),
            "expires_at": expires_at.isoformat(),
            "attempts": otp.attempts,
            "attempts_remaining": max(0, otp.max_attempts - otp.attempts),
        }

    async def cleanup(self, db: AsyncSession) -> int:
        removed = await otp_crud.delete_expired(db)
        logger.info("Removed {} expired or used OTP codes", removed)
        return removed

    async def stats(self, db: AsyncSession) -> Dict[str, Any]:
        return {"by_type": await otp_crud.stats(db)}


otp_service = OTPService()
