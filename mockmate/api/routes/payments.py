"""
Payment API routes
"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.api.deps import get_current_user
from mockmate.core.database import get_db
from mockmate.core.response import paged_response, success_response
from mockmate.models.payment import CreateOrderRequest, PaymentResponse, ProcessSuccessRequest
from mockmate.models.user import User
from mockmate.services.payment_service import payment_service

router = APIRouter()


def payment_data(payment) -> dict:
    return PaymentResponse.model_validate(payment).model_dump()


@router.get("/packages", summary="Credit packages")
async def list_packages(db: AsyncSession = Depends(get_db)):
    return success_response(data=await payment_service.list_packages(db))


@router.get("/plans", summary="Pricing plans")
async def list_plans(db: AsyncSession = Depends(get_db)):
    return success_response(data=await payment_service.plans(db))


@router.post("/create-order", status_code=201, summary="Create payment order")
async def create_order(
    data: CreateOrderRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a Cashfree order for a credit package

    The response carries the checkout session id and payment link.
    """
    result = await payment_service.create_order(db, user, data.package_id)
    return success_response(data=result, message="Order created", code=201)


@router.post("/process-success", summary="Confirm a paid order")
async def process_success(
    data: ProcessSuccessRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await payment_service.process_success(db, data.order_id, user)
    message = "Payment already processed" if result["already_processed"] else "Payment successful"
    return success_response(data=result, message=message)


@router.post("/webhook", summary="Cashfree webhook")
async def payment_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    # the signature covers the raw bytes, so the body is not parsed by FastAPI
    raw_body = await request.body()
    result = await payment_service.handle_webhook(db, raw_body, request.headers)
    return success_response(data=result, message="Webhook received")


@router.get("/history", summary="Payment history")
async def payment_history(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    payments, total = await payment_service.history(db, user, page=page, page_size=page_size)
    return paged_response(
        items=[payment_data(p) for p in payments], total=total, page=page, page_size=page_size,
    )


@router.get("/{payment_id}", summary="Get payment")
async def get_payment(
    payment_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    payment = await payment_service.get_payment(db, payment_id, user)
    return success_response(data=payment_data(payment))
