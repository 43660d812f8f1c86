"""
Authentication service

Registration, login with lockout, refresh-token rotation, logout, password
reset and the account operations that revoke tokens.
"""
from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import Request
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.cache import cache
from mockmate.core.config import settings
from mockmate.core.exceptions import BadRequestException, LockedException, NotFoundException, UnauthorizedException
from mockmate.core.logging import log_security_event
from mockmate.core.security import (
    TokenExpiredError,
    TokenInvalidError,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    generate_token,
    get_password_hash,
    verify_password,
)
from mockmate.crud import email_token_crud, password_reset_crud, refresh_token_crud, user_crud
from mockmate.models.base import ensure_aware, utc_now
from mockmate.models.user import ProfileUpdate, User, UserLogin, UserRegister, UserResponse
from mockmate.services.alert_service import alert_service
from mockmate.services.analytics_service import analytics_service
from mockmate.services.config_service import config_service
from mockmate.services.email_service import email_service
from mockmate.services.otp_service import otp_service
from mockmate.services.verification_service import verification_service

BLACKLIST_TTL = 24 * 60 * 60
RESET_TOKEN_TTL = timedelta(hours=1)
RESET_REQUEST_MESSAGE = "If the email exists, a reset link has been sent"
RESET_CODE_MESSAGE = "If the email exists, a reset code has been sent"


def blacklist_key(token: str) -> str:
    return f"blacklist:{token}"


def user_payload(user: User) -> Dict[str, Any]:
    return UserResponse.model_validate(user).model_dump()


class AuthService:
    """Account authentication flows"""

    async def issue_tokens(self, db: AsyncSession, user: User) -> Dict[str, Any]:
        access_token = create_access_token(user.id)
        refresh_token = create_refresh_token(user.id)
        await refresh_token_crud.replace_for_user(
            db, user.id, refresh_token,
            utc_now() + timedelta(days=settings.refresh_token_expire_days),
        )
        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": settings.access_token_expire_minutes * 60,
        }

    # ==================== Registration ====================

    async def register(
        self, db: AsyncSession, data: UserRegister, request: Optional[Request] = None
    ) -> Dict[str, Any]:
        if await user_crud.get_by_email(db, data.email) is not None:
            raise BadRequestException("A user with this email already exists", code="USER_EXISTS")

        starting_credits = await config_service.get_int(db, "new_user_starting_credits", 0)
        user = await user_crud.create(db, obj_in={
            "email": data.email,
            "password_hash": get_password_hash(data.password),
            "first_name": data.first_name,
            "last_name": data.last_name,
            "credits": starting_credits,
            "is_verified": False,
        })
        logger.info("User registered: {} ({})", user.email, user.id)

        verification = await verification_service.issue(db, user)
        if not verification["email_sent"]:
            logger.warning("Verification email not sent for {}", user.email)
        await analytics_service.track_registration(db, user, request)
        await alert_service.send_automatic_alert(db, "user_registered", user)

        return {
            "user": user_payload(user),
            "requires_email_verification": True,
            "verification_email_sent": verification["email_sent"],
        }

    # ==================== Login ====================

    async def login(self, db: AsyncSession, data: UserLogin, request: Optional[Request] = None) -> Dict[str, Any]:
        user = await user_crud.get_by_email(db, data.email)
        if user is None or user.deleted_at is not None:
            log_security_event("login_unknown_email", email=data.email)
            raise UnauthorizedException("Invalid email or password", code="INVALID_CREDENTIALS")
        if not user.is_active:
            raise UnauthorizedException("Account is disabled", code="ACCOUNT_DISABLED")
        if not user.is_verified:
            raise UnauthorizedException(
                "Please verify your email address before logging in",
                code="EMAIL_NOT_VERIFIED",
                data={"can_resend_verification": True, "email": user.email},
            )
        if user.locked_until is not None and ensure_aware(user.locked_until) > utc_now():
            raise LockedException(
                "Account is temporarily locked due to too many failed login attempts",
                data={"locked_until": ensure_aware(user.locked_until).isoformat()},
            )

        if not verify_password(data.password, user.password_hash):
            user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
            if user.failed_login_attempts >= settings.max_login_attempts:
                user.locked_until = utc_now() + timedelta(minutes=settings.lockout_minutes)
                log_security_event("account_locked", user_id=user.id, attempts=user.failed_login_attempts)
            else:
                log_security_event("login_failed", user_id=user.id, attempts=user.failed_login_attempts)
            await db.commit()
            raise UnauthorizedException("Invalid email or password", code="INVALID_CREDENTIALS")

        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login = utc_now()
        tokens = await self.issue_tokens(db, user)
        await analytics_service.track_login(db, user, request)
        logger.info("User logged in: {}", user.id)
        return {"user": user_payload(user), **tokens}

    # ==================== Tokens ====================

    async def refresh(self, db: AsyncSession, refresh_token: Optional[str]) -> Dict[str, Any]:
        if not refresh_token:
            raise UnauthorizedException("Refresh token is required", code="REFRESH_TOKEN_REQUIRED")
        try:
            claims = decode_refresh_token(refresh_token)
        except TokenExpiredError:
            raise UnauthorizedException("Refresh token has expired", code="REFRESH_TOKEN_EXPIRED")
        except TokenInvalidError:
            raise UnauthorizedException("Invalid refresh token", code="INVALID_REFRESH_TOKEN")

        if claims.get("type") != "refresh":
            raise UnauthorizedException("Invalid token type", code="INVALID_TOKEN_TYPE")
        stored = await refresh_token_crud.get_by_token(db, refresh_token)
        if stored is None or stored.user_id != claims.get("user_id"):
            log_security_event("refresh_token_reuse", user_id=claims.get("user_id"))
            raise UnauthorizedException("Invalid refresh token", code="INVALID_REFRESH_TOKEN")
        if ensure_aware(stored.expires_at) <= utc_now():
            raise UnauthorizedException("Refresh token has expired", code="REFRESH_TOKEN_EXPIRED")

        user = await user_crud.get(db, stored.user_id)
        if user is None or not user.is_active or user.deleted_at is not None:
            raise UnauthorizedException("User not found or inactive", code="INVALID_USER")
        return await self.issue_tokens(db, user)

    async def logout(self, db: AsyncSession, user: User, access_token: Optional[str]) -> None:
        if access_token:
            await cache.set(blacklist_key(access_token), True, BLACKLIST_TTL)
        await refresh_token_crud.delete_for_user(db, user.id)
        logger.info("User logged out: {}", user.id)

    @staticmethod
    async def is_blacklisted(token: str) -> bool:
        return await cache.exists(blacklist_key(token))

    # ==================== Password reset ====================

    async def request_password_reset(self, db: AsyncSession, email: str) -> str:
        user = await user_crud.get_by_email(db, email)
        if user is not None and user.is_active and user.deleted_at is None:
            token = generate_token(32)
            await password_reset_crud.delete_for_user(db, user.id)
            await password_reset_crud.create(db, obj_in={
                "user_id": user.id, "token": token, "expires_at": utc_now() + RESET_TOKEN_TTL,
            })
            await email_service.send_password_reset_email(db, user, token)
            log_security_event("password_reset_requested", user_id=user.id)
        return RESET_REQUEST_MESSAGE

    async def reset_password(self, db: AsyncSession, token: str, password: str) -> None:
        record = await password_reset_crud.get_valid(db, token)
        user = await user_crud.get(db, record.user_id) if record is not None else None
        if user is None:
            raise BadRequestException("Invalid or expired reset token", code="INVALID_RESET_TOKEN")
        await self._replace_password(db, user, password)

    async def request_password_reset_code(self, db: AsyncSession, email: str) -> str:
        """Email a password_reset OTP; the answer does not reveal whether the account exists"""
        user = await user_crud.get_by_email(db, email)
        if user is not None and user.is_active and user.deleted_at is None:
            await otp_service.create_otp(db, user, "password_reset")
            log_security_event("password_reset_requested", user_id=user.id, method="otp")
        return RESET_CODE_MESSAGE

    async def reset_password_with_code(self, db: AsyncSession, email: str, code: str, password: str) -> None:
        user = await user_crud.get_by_email(db, email)
        if user is None or not user.is_active or user.deleted_at is not None:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")
        await otp_service.consume(db, user.id, "password_reset", code)
        await self._replace_password(db, user, password)

    async def _replace_password(self, db: AsyncSession, user: User, password: str) -> None:
        """New hash, lockout cleared, reset and refresh tokens revoked; committed at once"""
        try:
            user.password_hash = get_password_hash(password)
            user.failed_login_attempts = 0
            user.locked_until = None
            user.updated_at = utc_now()
            await password_reset_crud.delete_for_user(db, user.id)
            await refresh_token_crud.delete_for_user(db, user.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        log_security_event("password_reset", user_id=user.id)
        await email_service.send_password_change_confirmation(db, user)

    # ==================== Account ====================

    async def change_password(self, db: AsyncSession, user: User, current: str, new: str) -> None:
        if not verify_password(current, user.password_hash):
            raise BadRequestException("Current password is incorrect", code="INVALID_CURRENT_PASSWORD")
        user.password_hash = get_password_hash(new)
        user.updated_at = utc_now()
        await password_reset_crud.delete_for_user(db, user.id)
        await refresh_token_crud.delete_for_user(db, user.id)
        log_security_event("password_changed", user_id=user.id)
        await email_service.send_password_change_confirmation(db, user)

    async def update_profile(self, db: AsyncSession, user: User, data: ProfileUpdate) -> Dict[str, Any]:
        email_changed = data.email != user.email
        if email_changed and await user_crud.email_taken(db, data.email, user.id):
            raise BadRequestException("Email is already in use", code="EMAIL_TAKEN")

        user.first_name = data.first_name
        user.last_name = data.last_name
        if email_changed:
            user.email = data.email
            user.is_verified = False
        user.updated_at = utc_now()
        await db.flush()

        if email_changed:
            await verification_service.issue(db, user)
            logger.info("User {} changed email; verification required", user.id)
        return {"user": user_payload(user), "email_verification_required": email_changed}

    async def delete_account(self, db: AsyncSession, user: User) -> None:
        user.is_active = False
        user.deleted_at = utc_now()
        user.updated_at = utc_now()
        await refresh_token_crud.delete_for_user(db, user.id)
        await password_reset_crud.delete_for_user(db, user.id)
        await email_token_crud.delete_for_user(db, user.id)
        log_security_event("account_deleted", user_id=user.id)


auth_service = AuthService()
