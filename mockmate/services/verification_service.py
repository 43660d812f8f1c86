"""
Email verification service

Link tokens (token_hex(32), 24 hours) or 6-digit email codes. Issuing a
token replaces the user's previous ones.
"""
from datetime import timedelta
from typing import Any, Dict

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.exceptions import BadRequestException, NotFoundException
from mockmate.core.security import generate_token
from mockmate.crud import email_token_crud, user_crud
from mockmate.models.base import utc_now, ensure_aware
from mockmate.models.user import User
from .email_service import email_service
from .otp_service import otp_service

TOKEN_TTL_HOURS = 24


class EmailVerificationService:
    """Issue and consume email verification tokens"""

    async def issue(self, db: AsyncSession, user: User) -> Dict[str, Any]:
        """Create a token and send the verification email; email failures are reported, not raised"""
        token = generate_token(32)
        await email_token_crud.replace_for_user(
            db, user.id, token, utc_now() + timedelta(hours=TOKEN_TTL_HOURS)
        )
        result = await email_service.send_verification_email(db, user, token)
        return {"token": token, "email_sent": result.get("success", False)}

    async def verify(self, db: AsyncSession, token: str) -> Dict[str, Any]:
        record = await email_token_crud.get_by_token(db, token)
        if record is None or record.used_at is not None:
            raise BadRequestException("Invalid verification token", code="INVALID_TOKEN")
        if ensure_aware(record.expires_at) <= utc_now():
            raise BadRequestException("Verification token has expired", code="TOKEN_EXPIRED")

        user = await user_crud.get(db, record.user_id)
        if user is None:
            raise BadRequestException("Invalid verification token", code="INVALID_TOKEN")
        record.used_at = utc_now()
        if user.is_verified:
            await db.flush()
            return {"already_verified": True, "user": user}
        return await self._mark_verified(db, user)

    async def _mark_verified(self, db: AsyncSession, user: User) -> Dict[str, Any]:
        user.is_verified = True
        user.updated_at = utc_now()
        await db.flush()
        logger.info("Email verified for user {}", user.id)

        await email_service.send_welcome_email(db, user)
        return {"already_verified": False, "user": user}

    # ==================== Code-based verification ====================

    async def send_code(self, db: AsyncSession, email: str) -> Dict[str, Any]:
        """Email a 6-digit verification code; unknown addresses report nothing sent"""
        user = await user_crud.get_by_email(db, email)
        if user is None or not user.is_active:
            return {"sent": False}
        if user.is_verified:
            return {"sent": False, "already_verified": True}
        result = await otp_service.create_otp(db, user, "email_verification")
        return {"sent": True, "expires_at": result["expires_at"], "email_sent": result["email_sent"]}

    async def verify_code(self, db: AsyncSession, email: str, code: str) -> Dict[str, Any]:
        user = await user_crud.get_by_email(db, email)
        if user is None or not user.is_active:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")
        if user.is_verified:
            raise BadRequestException("Email is already verified", code="EMAIL_ALREADY_VERIFIED")
        await otp_service.consume(db, user.id, "email_verification", code)
        return await self._mark_verified(db, user)

    async def resend(self, db: AsyncSession, email: str) -> Dict[str, Any]:
        user = await user_crud.get_by_email(db, email)
        if user is None or not user.is_active:
            return {"sent": False}
        if user.is_verified:
            return {"sent": False, "already_verified": True}
        result = await self.issue(db, user)
        return {"sent": True, "email_sent": result["email_sent"]}

    async def status(self, db: AsyncSession, user: User) -> Dict[str, Any]:
        pending = None
        if not user.is_verified:
            record = await email_token_crud.get_by(db, user_id=user.id)
            if record is not None and record.used_at is None:
                pending = ensure_aware(record.expires_at).isoformat()
        return {"email": user.email, "is_verified": user.is_verified, "pending_token_expires_at": pending}

    async def cleanup(self, db: AsyncSession) -> int:
        removed = await email_token_crud.delete_expired(db)
        logger.info("Removed {} expired or used verification tokens", removed)
        return removed

    async def stats(self, db: AsyncSession) -> Dict[str, Any]:
        return await email_token_crud.stats(db)


verification_service = EmailVerificationService()
