"""
Payment, credit ledger and webhook CRUD
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.models.payment import (
    Payment, CreditTransaction, PaymentWebhook, PaymentStatus, TransactionType,
)
from .base import CRUDBase


class CRUDPayment(CRUDBase[Payment]):
    """Payment CRUD"""

    async def get_by_order_id(self, db: AsyncSession, order_id: str) -> Optional[Payment]:
        result = await db.execute(select(self.model).where(self.model.order_id == order_id))
        return result.scalar_one_or_none()

    async def get_owned(self, db: AsyncSession, payment_id: str, user_id: str) -> Optional[Payment]:
        result = await db.execute(
            select(self.model).where(
                (self.model.id == payment_id) | (self.model.order_id == payment_id),
                self.model.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_filtered(
        self,
        db: AsyncSession,
        *,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Payment], int]:
        conditions = []
        if user_id:
            conditions.append(self.model.user_id == user_id)
        if status:
            conditions.append(self.model.status == status)
        return await self.paginate(db, conditions=conditions, page=page, page_size=page_size)

    async def revenue(self, db: AsyncSession, since: Optional[datetime] = None) -> Dict[str, int]:
        """Completed payment totals (amount in minor units)"""
        query = select(
            func.count(), func.coalesce(func.sum(self.model.amount_cents), 0),
            func.coalesce(func.sum(self.model.credits), 0),
        ).where(self.model.status == PaymentStatus.COMPLETED)
        if since is not None:
            query = query.where(self.model.completed_at >= since)
        count, amount, credits = (await db.execute(query)).one()
        return {"payments": count or 0, "amount_cents": int(amount or 0), "credits": int(credits or 0)}

    async def count_by_status(self, db: AsyncSession) -> Dict[str, int]:
        result = await db.execute(
            select(self.model.status, func.count()).group_by(self.model.status)
        )
        counts = {status: 0 for status in PaymentStatus.ALL}
        counts.update({status: count for status, count in result.all()})
        return counts

    async def count_purchasers(self, db: AsyncSession, since: Optional[datetime] = None) -> int:
        query = select(func.count(func.distinct(self.model.user_id))).where(
            self.model.status == PaymentStatus.COMPLETED
        )
        if since is not None:
            query = query.where(self.model.completed_at >= since)
        return (await db.execute(query)).scalar() or 0


class CRUDCreditTransaction(CRUDBase[CreditTransaction]):
    """Credit ledger CRUD"""

    async def record(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        transaction_type: str,
        amount: int,
        description: str,
        balance_after: Optional[int] = None,
        session_id: Optional[str] = None,
        payment_id: Optional[str] = None,
    ) -> CreditTransaction:
        return await self.create(db, obj_in={
            "user_id": user_id,
            "transaction_type": transaction_type,
            "amount": amount,
            "description": description,
            "balance_after": balance_after,
            "session_id": session_id,
            "payment_id": payment_id,
        })

    async def list_for_user(
        self, db: AsyncSession, user_id: str, *, page: int = 1, page_size: int = 20
    ) -> Tuple[List[CreditTransaction], int]:
        return await self.paginate(
            db, conditions=[self.model.user_id == user_id], page=page, page_size=page_size
        )

    async def totals(self, db: AsyncSession) -> Dict[str, int]:
        """Credits issued (positive entries) and used (usage entries)"""
        issued = await db.execute(
            select(func.coalesce(func.sum(self.model.amount), 0)).where(self.model.amount > 0)
        )
        used = await db.execute(
            select(func.coalesce(func.sum(self.model.amount), 0)).where(
                self.model.transaction_type == TransactionType.USAGE
            )
        )
        return {"issued": int(issued.scalar() or 0), "used": abs(int(used.scalar() or 0))}


class CRUDPaymentWebhook(CRUDBase[PaymentWebhook]):
    """Webhook log CRUD"""

    async def log(
        self,
        db: AsyncSession,
        *,
        event_type: str,
        payload: Dict[str, Any],
        signature_valid: bool,
        order_id: Optional[str] = None,
    ) -> PaymentWebhook:
        return await self.create(db, obj_in={
            "event_type": event_type,
            "payload": payload,
            "signature_valid": signature_valid,
            "order_id": order_id,
        })


payment_crud = CRUDPayment(Payment)
credit_transaction_crud = CRUDCreditTransaction(CreditTransaction)
payment_webhook_crud = CRUDPaymentWebhook(PaymentWebhook)
