"""
OTP and email verification token CRUD
"""
from datetime import datetime
from typing import Dict, Optional
from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.models.base import utc_now
from mockmate.models.verification import OTPCode, EmailVerificationToken
from .base import CRUDBase


class CRUDOTP(CRUDBase[OTPCode]):
    """OTP CRUD"""

    async def get_active(self, db: AsyncSession, user_id: str, otp_type: str) -> Optional[OTPCode]:
        """Latest unused code of a type"""
        result = await db.execute(
            select(self.model)
            .where(
                self.model.user_id == user_id,
                self.model.otp_type == otp_type,
                self.model.is_used == False,
            )
            .order_by(self.model.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def replace(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        email: str,
        otp_type: str,
        code: str,
        expires_at: datetime,
        max_attempts: int,
    ) -> OTPCode:
        await self.delete_where(db, self.model.user_id == user_id, self.model.otp_type == otp_type)
        return await self.create(db, obj_in={
            "user_id": user_id,
            "email": email,
            "otp_type": otp_type,
            "otp_code": code,
            "expires_at": expires_at,
            "max_attempts": max_attempts,
        })

    async def delete_expired(self, db: AsyncSession) -> int:
        return await self.delete_where(
            db, (self.model.expires_at < utc_now()) | (self.model.is_used == True)
        )

    async def stats(self, db: AsyncSession) -> Dict[str, Dict[str, int]]:
        """Counts per type: total / used / expired / active"""
        now = utc_now()
        result = await db.execute(
            select(
                self.model.otp_type,
                func.count(),
                func.sum(case((self.model.is_used == True, 1), else_=0)),
                func.sum(case(
                    ((self.model.is_used == False) & (self.model.expires_at < now), 1), else_=0
                )),
            ).group_by(self.model.otp_type)
        )
        stats = {}
        for otp_type, total, used, expired in result.all():
            used = int(used or 0)
            expired = int(expired or 0)
            stats[otp_type] = {
                "total": total,
                "used": used,
                "expired": expired,
                "active": max(0, total - used - expired),
            }
        return stats


class CRUDEmailVerificationToken(CRUDBase[EmailVerificationToken]):
    """Email verification token CRUD"""

    async def get_by_token(self, db: AsyncSession, token: str) -> Optional[EmailVerificationToken]:
        result = await db.execute(select(self.model).where(self.model.token == token))
        return result.scalar_one_or_none()

    async def replace_for_user(
        self, db: AsyncSession, user_id: str, token: str, expires_at: datetime
    ) -> EmailVerificationToken:
        await self.delete_for_user(db, user_id)
        return await self.create(db, obj_in={
            "user_id": user_id, "token": token, "expires_at": expires_at
        })

    async def delete_for_user(self, db: AsyncSession, user_id: str) -> int:
        return await self.delete_where(db, self.model.user_id == user_id)

    async def delete_expired(self, db: AsyncSession) -> int:
        return await self.delete_where(
            db, (self.model.expires_at < utc_now()) | (self.model.used_at.is_not(None))
        )

    async def stats(self, db: AsyncSession) -> Dict[str, int]:
        now = utc_now()
        total = await self.count(db)
        used = await self.count(db, self.model.used_at.is_not(None))
        expired = await self.count(db, self.model.used_at.is_(None), self.model.expires_at < now)
        return {
            "total": total,
            "used": used,
            "expired": expired,
            "pending": max(0, total - used - expired),
        }


otp_crud = CRUDOTP(OTPCode)
email_token_crud = CRUDEmailVerificationToken(EmailVerificationToken)
