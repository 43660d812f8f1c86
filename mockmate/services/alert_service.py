"""
Alert service

Visibility rules, per-user read/dismiss state, socket delivery, predefined
templates and the automatic alerts raised by account and payment events.
"""
from typing import Any, Dict, List, Optional, Union

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.exceptions import BadRequestException, NotFoundException
from mockmate.crud import alert_crud, recipient_crud, user_crud
from mockmate.models.alert import Alert, AlertCreate, AlertUpdate, AlertResponse, PRIORITY_RANK
from mockmate.models.base import utc_now, ensure_aware
from mockmate.models.user import User, UserRole
from mockmate.realtime.server import hub

ALERT_TEMPLATES: List[Dict[str, Any]] = [
    {
        "id": "welcome_user",
        "title": "Welcome to MockMate!",
        "message": "Thank you for joining MockMate. You have {{credits}} free credits to start your interview practice.",
        "alert_type": "success",
        "priority": "normal",
        "icon": "user-plus",
        "variables": ["credits"],
    },
    {
        "id": "low_credits",
        "title": "Low Credits Warning",
        "message": "You have {{credits}} credits remaining. Purchase more credits to continue using MockMate.",
        "alert_type": "warning",
        "priority": "high",
        "icon": "credit-card",
        "variables": ["credits"],
    },
    {
        "id": "system_maintenance",
        "title": "Scheduled Maintenance",
        "message": "MockMate will undergo scheduled maintenance on {{date}} from {{start_time}} to {{end_time}}. "
                   "Service may be temporarily unavailable.",
        "alert_type": "info",
        "priority": "high",
        "icon": "wrench",
        "variables": ["date", "start_time", "end_time"],
    },
    {
        "id": "new_feature",
        "title": "New Feature Available",
        "message": "We've added a new feature: {{feature_name}}. {{description}}",
        "alert_type": "announcement",
        "priority": "normal",
        "icon": "star",
        "variables": ["feature_name", "description"],
    },
]


def serialize_alert(alert: Alert, **extra: Any) -> Dict[str, Any]:
    """JSON-safe alert payload"""
    return {**AlertResponse.model_validate(alert).model_dump(mode="json"), **extra}


class AlertService:
    """Alert operations"""

    # ==================== Visibility ====================

    @staticmethod
    def targets_user(alert: Alert, user: User) -> bool:
        if alert.target_type == "all":
            return True
        if alert.target_type == "admin":
            return user.role == UserRole.ADMIN
        if alert.target_type == "role":
            return user.role in (alert.target_roles or [])
        if alert.target_type == "specific":
            return user.id in (alert.target_user_ids or [])
        return False

    async def visible_alerts(
        self,
        db: AsyncSession,
        user: User,
        *,
        include_read: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Alerts the user can see, critical first then newest"""
        candidates = [a for a in await alert_crud.get_current(db) if self.targets_user(a, user)]
        states = await recipient_crud.states_for_user(db, user.id, [a.id for a in candidates])

        visible = []
        for alert in candidates:
            state = states.get(alert.id)
            if state is not None and state.dismissed_at is not None:
                continue
            is_read = state is not None and state.read_at is not None
            if is_read and not include_read:
                continue
            visible.append((alert, state, is_read))

        visible.sort(key=lambda item: (
            PRIORITY_RANK.get(item[0].priority, 99),
            -ensure_aware(item[0].created_at).timestamp(),
        ))
        if limit:
            visible = visible[:limit]
        return [
            serialize_alert(
                alert, is_read=is_read,
                read_at=ensure_aware(state.read_at).isoformat() if is_read else None,
            )
            for alert, state, is_read in visible
        ]

    async def unread_count(self, db: AsyncSession, user: User) -> int:
        return len(await self.visible_alerts(db, user, include_read=False))

    async def get_visible(self, db: AsyncSession, user: User, alert_id: str) -> Alert:
        alert = await alert_crud.get(db, alert_id)
        now = utc_now()
        if (
            alert is None
            or not alert.is_active
            or ensure_aware(alert.starts_at) > now
            or (alert.expires_at is not None and ensure_aware(alert.expires_at) <= now)
            or not self.targets_user(alert, user)
        ):
            raise NotFoundException("Alert not found", code="ALERT_NOT_FOUND")
        state = await recipient_crud.get_for(db, alert.id, user.id)
        if state is not None and state.dismissed_at is not None:
            raise NotFoundException("Alert not found", code="ALERT_NOT_FOUND")
        return alert

    async def get_for_user(self, db: AsyncSession, user: User, alert_id: str) -> Dict[str, Any]:
        alert = await self.get_visible(db, user, alert_id)
        state = await recipient_crud.get_for(db, alert.id, user.id)
        is_read = state is not None and state.read_at is not None
        return serialize_alert(alert, is_read=is_read)

    async def mark_read(self, db: AsyncSession, user: User, alert_id: str) -> Dict[str, Any]:
        alert = await self.get_visible(db, user, alert_id)
        state = await recipient_crud.get_or_create(db, alert.id, user.id)
        if state.read_at is None:
            state.read_at = utc_now()
            await db.flush()
        return {"alert_id": alert.id, "read_at": ensure_aware(state.read_at).isoformat()}

    async def dismiss(self, db: AsyncSession, user: User, alert_id: str) -> Dict[str, Any]:
        alert = await self.get_visible(db, user, alert_id)
        if not alert.is_dismissible:
            raise BadRequestException("This alert cannot be dismissed", code="ALERT_NOT_DISMISSIBLE")
        state = await recipient_crud.get_or_create(db, alert.id, user.id)
        now = utc_now()
        state.dismissed_at = now
        if state.read_at is None:
            state.read_at = now
        await db.flush()
        return {"alert_id": alert.id, "dismissed_at": now.isoformat()}

    # ==================== Admin ====================

    async def create_alert(
        self,
        db: AsyncSession,
        data: Union[AlertCreate, Dict[str, Any]],
        created_by: Optional[str] = None,
        source: str = "admin",
    ) -> Alert:
        """Create an alert and push it to its targets"""
        if isinstance(data, AlertCreate):
            payload = data.model_dump()
        else:
            payload = AlertCreate(**data).model_dump()
        if payload.get("starts_at") is None:
            payload["starts_at"] = utc_now()
        alert = await alert_crud.create(db, obj_in={**payload, "created_by": created_by, "source": source})
        logger.info("Alert {} created ({}, target={})", alert.id, source, alert.target_type)
        await self.deliver(db, alert, "new_alert")
        return alert

    async def update_alert(self, db: AsyncSession, alert_id: str, data: AlertUpdate) -> Alert:
        alert = await alert_crud.get(db, alert_id)
        if alert is None:
            raise NotFoundException("Alert not found", code="ALERT_NOT_FOUND")
        alert = await alert_crud.update(db, db_obj=alert, obj_in=data)
        await self.deliver(db, alert, "alert_updated")
        return alert

    async def delete_alert(self, db: AsyncSession, alert_id: str) -> None:
        alert = await alert_crud.get(db, alert_id)
        if alert is None:
            raise NotFoundException("Alert not found", code="ALERT_NOT_FOUND")
        targets = await self.target_user_ids(db, alert)
        await alert_crud.delete_cascade(db, alert)
        await self._emit(targets, "alert_deleted", {"alert_id": alert_id})
        logger.info("Alert {} deleted", alert_id)

    async def analytics(self, db: AsyncSession, alert_id: str) -> Dict[str, Any]:
        alert = await alert_crud.get(db, alert_id)
        if alert is None:
            raise NotFoundException("Alert not found", code="ALERT_NOT_FOUND")
        stats = await recipient_crud.stats_for_alert(db, alert_id)
        targeted = len(await self.target_user_ids(db, alert))
        base = targeted or stats["recipients"]
        return {
            "alert_id": alert_id,
            "targeted_users": targeted,
            **stats,
            "read_rate": round(stats["read"] / base * 100, 2) if base else 0.0,
            "dismiss_rate": round(stats["dismissed"] / base * 100, 2) if base else 0.0,
        }

    def templates(self) -> List[Dict[str, Any]]:
        return ALERT_TEMPLATES

    async def cleanup(self, db: AsyncSession, days: int = 30) -> int:
        removed = await alert_crud.delete_expired_before(db, days)
        logger.info("Removed {} alerts expired more than {} days ago", removed, days)
        return removed

    # ==================== Delivery ====================

    async def target_user_ids(self, db: AsyncSession, alert: Alert) -> List[str]:
        if alert.target_type == "all":
            return await user_crud.get_active_ids(db)
        if alert.target_type == "admin":
            return await user_crud.get_active_ids(db, role=UserRole.ADMIN)
        if alert.target_type == "role":
            return await user_crud.get_active_ids_by_roles(db, alert.target_roles or [])
        if alert.target_type == "specific":
            return await user_crud.filter_active_ids(db, alert.target_user_ids or [])
        return []

    async def deliver(self, db: AsyncSession, alert: Alert, event: str = "new_alert") -> int:
        """Push an alert event to every targeted user's room; best effort"""
        if ensure_aware(alert.starts_at) > utc_now() and event == "new_alert":
            return 0
        try:
            targets = await self.target_user_ids(db, alert)
        except Exception as exc:
            logger.error("Failed to resolve targets for alert {}: {}", alert.id, exc)
            return 0
        return await self._emit(targets, event, {"alert": serialize_alert(alert)})

    async def _emit(self, user_ids: List[str], event: str, payload: Dict[str, Any]) -> int:
        delivered = 0
        for user_id in user_ids:
            if await hub.emit_to_user(user_id, event, payload):
                delivered += 1
        return delivered

    # ==================== Automatic alerts ====================

    async def send_automatic_alert(
        self, db: AsyncSession, event_type: str, user: User, **data: Any
    ) -> Optional[Alert]:
        """System alert for an account event; failures are logged, never raised"""
        builders = {
            "user_registered": lambda: {
                "title": "Welcome to MockMate!",
                "message": f"Thank you for joining MockMate, {user.first_name}. "
                           f"You have {user.credits} credits to start your interview practice.",
                "alert_type": "success",
                "icon": "user-plus",
            },
            "low_credits": lambda: {
                "title": "Low Credits Warning",
                "message": f"You have {user.credits} credits remaining. "
                           "Purchase more credits to continue using MockMate.",
                "alert_type": "warning",
                "priority": "high",
                "action_url": "/pricing",
                "action_text": "Buy Credits",
                "icon": "credit-card",
            },
            "payment_successful": lambda: {
                "title": "Payment Successful",
                "message": f"Your payment of {data.get('amount')} {data.get('currency', 'INR')} was successful. "
                           f"{data.get('credits')} credits have been added to your account.",
                "alert_type": "success",
                "icon": "check-circle",
            },
            "session_completed": lambda: {
                "title": "Interview Completed",
                "message": f"Your interview for {data.get('job_title', 'your session')} is complete. "
                           "Review the transcript and feedback any time.",
                "alert_type": "info",
                "action_url": f"/sessions/{data.get('session_id', '')}",
                "action_text": "View Session",
                "icon": "clipboard-check",
            },
        }
        builder = builders.get(event_type)
        if builder is None:
            logger.warning("Unknown automatic alert event type: {}", event_type)
            return None

        try:
            payload = {**builder(), "target_type": "specific", "target_user_ids": [user.id]}
            return await self.create_alert(db, payload, source=event_type)
        except Exception as exc:
            logger.error("Failed to send automatic alert {} for user {}: {}", event_type, user.id, exc)
            return None


alert_service = AlertService()
