"""
Admin service

Dashboard aggregates, system status and user management for the admin API.
"""
import time
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.config import settings
from mockmate.core.exceptions import BadRequestException, NotFoundException
from mockmate.core.logging import log_security_event
from mockmate.core.redis import RedisClient
from mockmate.crud import (
    activity_crud,
    credit_transaction_crud,
    payment_crud,
    session_crud,
    user_crud,
)
from mockmate.models.analytics import UserActivityResponse
from mockmate.models.base import utc_now
from mockmate.models.interview import InterviewSession
from mockmate.models.payment import Payment, TransactionType
from mockmate.models.user import AdminUserUpdate, User
from mockmate.realtime.server import hub
from .auth_service import auth_service
from .email_service import email_service

STARTED_AT = time.monotonic()


def day_start(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class AdminService:
    """Admin aggregates and user management"""

    # ==================== Dashboard ====================

    async def dashboard(self, db: AsyncSession) -> Dict[str, Any]:
        now = utc_now()
        today = day_start(now)
        week_ago = now - timedelta(days=7)
        month_start = today.replace(day=1)

        users = {
            "total": await user_crud.count(db),
            "active": await user_crud.count(db, User.is_active == True),
            "verified": await user_crud.count(db, User.is_verified == True),
            "new_today": await user_crud.count(db, User.created_at >= today),
            "new_this_week": await user_crud.count(db, User.created_at >= week_ago),
        }
        by_status = await session_crud.count_by_status(db)
        sessions = {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "today": await session_crud.count(db, InterviewSession.created_at >= today),
        }
        total = await payment_crud.revenue(db)
        month = await payment_crud.revenue(db, month_start)
        revenue = {
            "total_cents": total["amount_cents"],
            "this_month_cents": month["amount_cents"],
            "completed_payments": total["payments"],
        }
        return {
            "users": users,
            "sessions": sessions,
            "revenue": revenue,
            "credits": await credit_transaction_crud.totals(db),
            "sockets": hub.connection_stats(),
            "generated_at": now.isoformat(),
        }

    async def recent_activity(self, db: AsyncSession, limit: int = 20) -> List[Dict[str, Any]]:
        """Latest activity rows, newest first"""
        activities, _ = await activity_crud.list_filtered(db, page=1, page_size=limit)
        return [UserActivityResponse.model_validate(a).model_dump() for a in activities]

    async def system_status(self, db: AsyncSession) -> Dict[str, Any]:
        try:
            await db.execute(text("SELECT 1"))
            database = "connected"
        except Exception as exc:
            logger.error("Database health check failed: {}", exc)
            database = "error"

        redis_state = "not_configured"
        if settings.redis_url:
            redis_state = "connected" if RedisClient.is_connected() else "disconnected"

        return {
            "database": database,
            "redis": redis_state,
            "email_configured": await email_service.is_configured(db),
            "llm_configured": bool(settings.llm_api_key),
            "payment_gateway_configured": bool(settings.cashfree_app_id and settings.cashfree_secret_key),
            "environment": settings.app_env,
            "uptime_seconds": int(time.monotonic() - STARTED_AT),
            "sockets": hub.connection_stats(),
        }

    # ==================== Users ====================

    async def get_user(self, db: AsyncSession, user_id: str) -> User:
        user = await user_crud.get(db, user_id)
        if user is None:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")
        return user

    async def list_users(
        self,
        db: AsyncSession,
        *,
        search: Optional[str] = None,
        role: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[User], int]:
        return await user_crud.search(
            db, search=search, role=role, status=status, page=page, page_size=page_size
        )

    async def user_detail(self, db: AsyncSession, user_id: str) -> Dict[str, Any]:
        user = await self.get_user(db, user_id)
        return {
            "user": user,
            "session_count": await session_crud.count(db, InterviewSession.user_id == user.id),
            "payment_count": await payment_crud.count(db, Payment.user_id == user.id),
            "sessions_by_status": await session_crud.count_by_status(db, user.id),
        }

    async def update_user(
        self, db: AsyncSession, user_id: str, data: AdminUserUpdate, admin: User
    ) -> User:
        user = await self.get_user(db, user_id)
        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        if user.id == admin.id and (updates.get("is_active") is False or updates.get("role", user.role) != user.role):
            raise BadRequestException(
                "You cannot deactivate or demote your own account", code="CANNOT_MODIFY_SELF"
            )
        user = await user_crud.update(db, db_obj=user, obj_in=updates)
        logger.info("User {} updated by admin {}: {}", user.id, admin.id, sorted(updates))
        return user

    async def adjust_credits(
        self, db: AsyncSession, user_id: str, amount: int, reason: str, admin: User
    ) -> Dict[str, Any]:
        """Signed credit adjustment; the balance may not go below zero"""
        user = await self.get_user(db, user_id)
        if amount == 0:
            raise BadRequestException("Amount must not be zero", code="INVALID_CREDIT_AMOUNT")
        if (user.credits or 0) + amount < 0:
            raise BadRequestException(
                "Adjustment would make the balance negative",
                code="INVALID_CREDIT_AMOUNT",
                data={"current": user.credits, "amount": amount},
            )

        previous = user.credits
        await user_crud.add_credits(db, user, amount)
        transaction = await credit_transaction_crud.record(
            db,
            user_id=user.id,
            transaction_type=TransactionType.ADMIN_ADJUSTMENT,
            amount=amount,
            description=f"Admin adjustment: {reason}",
            balance_after=user.credits,
        )
        logger.info(
            "Admin {} adjusted credits of user {} by {} ({} -> {})",
            admin.id, user.id, amount, previous, user.credits,
        )
        return {
            "user_id": user.id,
            "previous_credits": previous,
            "credits": user.credits,
            "amount": amount,
            "transaction_id": transaction.id,
        }

    async def unlock_user(self, db: AsyncSession, user_id: str, admin: User) -> User:
        user = await self.get_user(db, user_id)
        user.failed_login_attempts = 0
        user.locked_until = None
        user.updated_at = utc_now()
        await db.flush()
        log_security_event("account_unlocked", user_id=user.id, admin_id=admin.id)
        return user

    async def delete_user(self, db: AsyncSession, user_id: str, admin: User) -> None:
        user = await self.get_user(db, user_id)
        if user.id == admin.id:
            raise BadRequestException("You cannot delete your own account here", code="CANNOT_DELETE_SELF")
        await auth_service.delete_account(db, user)
        logger.info("User {} deleted by admin {}", user.id, admin.id)

    # ==================== Sessions ====================

    async def get_session(self, db: AsyncSession, session_id: str) -> InterviewSession:
        session = await session_crud.get(db, session_id)
        if session is None:
            raise NotFoundException("Session not found", code="SESSION_NOT_FOUND")
        return session

    async def session_stats(self, db: AsyncSession) -> Dict[str, Any]:
        now = utc_now()
        by_status = await session_crud.count_by_status(db)
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "today": await session_crud.count(db, InterviewSession.created_at >= day_start(now)),
            "this_week": await session_crud.count(db, InterviewSession.created_at >= now - timedelta(days=7)),
            "credits_used": (await credit_transaction_crud.totals(db))["used"],
        }


admin_service = AdminService()
