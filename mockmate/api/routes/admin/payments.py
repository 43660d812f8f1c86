"""
Admin payment routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import require_admin
from mockmate.core.database import get_db
from mockmate.core.response import paged_response, success_response
from mockmate.crud import payment_crud
from mockmate.models.payment import PaymentResponse, RefundRequest
from mockmate.models.user import User
from mockmate.services.payment_service import payment_service

router = APIRouter()


@router.get("", summary="List payments")
async def list_payments(
    user_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    payments, total = await payment_crud.list_filtered(
        db, user_id=user_id, status=status, page=page, page_size=page_size
    )
    return paged_response(
        items=[PaymentResponse.model_validate(p).model_dump() for p in payments],
        total=total, page=page, page_size=page_size,
    )


@router.get("/stats", summary="Payment statistics")
async def payment_stats(db: AsyncSession = Depends(get_db)):
    return success_response(data=await payment_service.stats(db))


@router.post("/{payment_id}/refund", summary="Refund payment")
async def refund_payment(
    payment_id: str,
    data: Optional[RefundRequest] = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Mark the payment refunded and take back its credits
    """
    reason = data.reason if data else None
    result = await payment_service.refund(db, payment_id, reason=reason, admin_id=admin.id)
    return success_response(data=result, message="Payment refunded")
