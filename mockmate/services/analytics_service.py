"""
Analytics service

Activity tracking helpers and the reporting queries behind the admin
analytics dashboard.
"""
from datetime import timedelta
from typing import Any, Dict, List, Optional

from fastapi import Request
from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.rate_limit import client_ip
from mockmate.crud import activity_crud, page_visit_crud, payment_crud, session_crud, user_crud
from mockmate.models.analytics import PageVisit, UserActivity
from mockmate.models.base import utc_now
from mockmate.models.payment import Payment, PaymentStatus
from mockmate.models.user import User

REALTIME_WINDOW_MINUTES = 5


class AnalyticsService:
    """Tracking and reporting"""

    # ==================== Tracking ====================

    async def track_user_activity(
        self,
        db: AsyncSession,
        user_id: Optional[str],
        action_type: str,
        details: Optional[Dict[str, Any]] = None,
        request: Optional[Request] = None,
    ) -> Optional[UserActivity]:
        """Record one activity row; tracking failures are logged, never raised"""
        try:
            return await activity_crud.create(db, obj_in={
                "user_id": user_id,
                "action_type": action_type,
                "details": details or {},
                "ip_address": client_ip(request) if request is not None else None,
                "user_agent": request.headers.get("user-agent", "")[:500] if request is not None else None,
            })
        except Exception as exc:
            logger.warning("Failed to track activity {} for {}: {}", action_type, user_id, exc)
            return None

    async def track_registration(self, db: AsyncSession, user: User, request: Optional[Request] = None):
        return await self.track_user_activity(
            db, user.id, "user_registered", {"method": "email", "email": user.email}, request
        )

    async def track_login(self, db: AsyncSession, user: User, request: Optional[Request] = None):
        return await self.track_user_activity(db, user.id, "user_login", {"method": "email"}, request)

    async def track_credit_purchase(
        self, db: AsyncSession, user_id: str, details: Dict[str, Any], request: Optional[Request] = None
    ):
        return await self.track_user_activity(db, user_id, "credit_purchase", details, request)

    async def track_interview_session(
        self, db: AsyncSession, user_id: str, details: Dict[str, Any], request: Optional[Request] = None
    ):
        return await self.track_user_activity(db, user_id, "interview_session", details, request)

    # ==================== Reporting ====================

    async def get_dashboard_analytics(self, db: AsyncSession, days: int = 30) -> Dict[str, Any]:
        since = utc_now() - timedelta(days=days)
        total_users = await user_crud.count(db, User.deleted_at.is_(None))
        registrations = await user_crud.count(db, User.created_at >= since)
        traffic = await page_visit_crud.summary(db, since)
        revenue = await payment_crud.revenue(db, since)
        purchasers = await payment_crud.count_purchasers(db, since)
        session_counts = await session_crud.count_by_status(db)

        return {
            "period_days": days,
            "total_users": total_users,
            "registrations": registrations,
            "visits": traffic["unique_visitors"],
            "page_views": traffic["visits"],
            "unique_users": traffic["unique_users"],
            "credit_purchases": revenue["payments"],
            "revenue_cents": revenue["amount_cents"],
            "credits_sold": revenue["credits"],
            "daily": await self.daily_series(db, since),
            "top_pages": await page_visit_crud.top_paths(db, since),
            "activity_breakdown": await activity_crud.count_by_action(db, since),
            "sessions": {
                "by_status": session_counts,
                "total": sum(session_counts.values()),
                "created_in_period": await session_crud.count_since(db, since),
            },
            "conversion_rate": round(purchasers / registrations * 100, 2) if registrations else 0.0,
        }

    async def daily_series(self, db: AsyncSession, since) -> List[Dict[str, Any]]:
        """Per-day page views, registrations and revenue"""
        series: Dict[str, Dict[str, Any]] = {}

        def bucket(day) -> Dict[str, Any]:
            key = str(day)
            return series.setdefault(key, {"date": key, "page_views": 0, "registrations": 0, "revenue_cents": 0})

        visits = await db.execute(
            select(func.date(PageVisit.created_at), func.count())
            .where(PageVisit.created_at >= since)
            .group_by(func.date(PageVisit.created_at))
        )
        for day, count in visits.all():
            bucket(day)["page_views"] = count

        signups = await db.execute(
            select(func.date(User.created_at), func.count())
            .where(User.created_at >= since)
            .group_by(func.date(User.created_at))
        )
        for day, count in signups.all():
            bucket(day)["registrations"] = count

        revenue = await db.execute(
            select(func.date(Payment.completed_at), func.coalesce(func.sum(Payment.amount_cents), 0))
            .where(Payment.status == PaymentStatus.COMPLETED, Payment.completed_at >= since)
            .group_by(func.date(Payment.completed_at))
        )
        for day, amount in revenue.all():
            bucket(day)["revenue_cents"] = int(amount or 0)

        return [series[key] for key in sorted(series)]

    async def get_realtime(self, db: AsyncSession) -> Dict[str, Any]:
        since = utc_now() - timedelta(minutes=REALTIME_WINDOW_MINUTES)
        active_from_visits = await db.execute(
            select(func.count(func.distinct(PageVisit.user_id))).where(
                PageVisit.created_at >= since, PageVisit.user_id.is_not(None)
            )
        )
        recent = await db.execute(
            select(PageVisit).where(PageVisit.created_at >= since)
            .order_by(PageVisit.created_at.desc()).limit(20)
        )
        return {
            "window_minutes": REALTIME_WINDOW_MINUTES,
            "active_users": max(
                active_from_visits.scalar() or 0, await activity_crud.active_users(db, since)
            ),
            "page_views": (await page_visit_crud.summary(db, since))["visits"],
            "recent_page_views": [
                {
                    "path": visit.path,
                    "method": visit.method,
                    "status_code": visit.status_code,
                    "user_id": visit.user_id,
                    "created_at": visit.created_at,
                }
                for visit in recent.scalars().all()
            ],
        }

    async def cleanup_old_data(self, db: AsyncSession, days: int = 365) -> Dict[str, int]:
        cutoff = utc_now() - timedelta(days=days)
        visits = await page_visit_crud.delete_where(db, PageVisit.created_at < cutoff)
        activities = await activity_crud.delete_where(db, UserActivity.created_at < cutoff)
        logger.info("Analytics cleanup: {} page visits, {} activities older than {} days", visits, activities, days)
        return {"page_visits": visits, "activities": activities}


analytics_service = AnalyticsService()
