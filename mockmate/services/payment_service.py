"""
Payment service

Credit packages, Cashfree orders, success processing (client callback and
webhook), refunds and payment statistics.
"""
import json
import secrets
import time
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mockmate.core.config import settings
from mockmate.core.exceptions import (
    BadGatewayException,
    BadRequestException,
    NotFoundException,
    ServiceUnavailableException,
    UnauthorizedException,
)
from mockmate.crud import credit_transaction_crud, payment_crud, payment_webhook_crud, user_crud
from mockmate.models.base import utc_now
from mockmate.models.payment import Payment, PaymentStatus, TransactionType
from mockmate.models.user import User
from mockmate.services.alert_service import alert_service
from mockmate.services.analytics_service import analytics_service
from mockmate.services.config_service import config_service
from mockmate.services.email_service import email_service
from mockmate.services.payment_gateway import CashfreeGateway, GatewayNotConfigured, PaymentGatewayError

DEFAULT_PACKAGES: List[Dict[str, Any]] = [
    {
        "id": "starter",
        "name": "Starter Pack",
        "credits": 10,
        "bonus_credits": 0,
        "price": 499,
        "discount_percent": 0,
        "popular": False,
        "description": "Perfect for trying out MockMate",
    },
    {
        "id": "professional",
        "name": "Professional Pack",
        "credits": 25,
        "bonus_credits": 5,
        "price": 999,
        "discount_percent": 10,
        "popular": True,
        "description": "Most popular choice for regular practice",
    },
    {
        "id": "premium",
        "name": "Premium Pack",
        "credits": 60,
        "bonus_credits": 15,
        "price": 1999,
        "discount_percent": 20,
        "popular": False,
        "description": "Best value for intensive preparation",
    },
]

SUCCESS_EVENT = "PAYMENT_SUCCESS_WEBHOOK"
FAILED_EVENT = "PAYMENT_FAILED_WEBHOOK"


def price_cents(package: Dict[str, Any]) -> int:
    """Discounted price in minor units"""
    discount = package.get("discount_percent") or 0
    return round(package["price"] * (1 - discount / 100) * 100)


def generate_order_id() -> str:
    return f"MM_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class PaymentService:
    """Credit purchase flow"""

    def __init__(self, gateway: Optional[CashfreeGateway] = None):
        self._gateway = gateway

    @property
    def gateway(self) -> CashfreeGateway:
        if self._gateway is None:
            self._gateway = CashfreeGateway()
        return self._gateway

    @gateway.setter
    def gateway(self, value: Optional[CashfreeGateway]) -> None:
        self._gateway = value

    # ==================== Packages ====================

    async def list_packages(self, db: AsyncSession) -> List[Dict[str, Any]]:
        currency = await config_service.get(db, "payment_currency", "INR")
        packages = await config_service.get(db, "credit_packages")
        if not isinstance(packages, list) or not packages:
            packages = DEFAULT_PACKAGES

        result = []
        for package in packages:
            cents = price_cents(package)
            result.append({
                **package,
                "currency": package.get("currency") or currency,
                "bonus_credits": package.get("bonus_credits") or 0,
                "discount_percent": package.get("discount_percent") or 0,
                "total_credits": package["credits"] + (package.get("bonus_credits") or 0),
                "price_cents": cents,
                "final_price": cents / 100,
            })
        return result

    async def get_package(self, db: AsyncSession, package_id: str) -> Dict[str, Any]:
        for package in await self.list_packages(db):
            if package["id"] == package_id:
                return package
        raise BadRequestException(f"Unknown credit package '{package_id}'", code="INVALID_PACKAGE")

    async def plans(self, db: AsyncSession) -> Dict[str, Any]:
        packages = await self.list_packages(db)
        return {
            "packages": packages,
            "currency": packages[0]["currency"] if packages else "INR",
            "lowest_price_per_credit": min(
                (p["final_price"] / p["total_credits"] for p in packages if p["total_credits"]),
                default=None,
            ),
            "gateway": "cashfree",
        }

    # ==================== Orders ====================

    async def create_order(self, db: AsyncSession, user: User, package_id: str) -> Dict[str, Any]:
        """Create a gateway order and store it as a pending payment"""
        package = await self.get_package(db, package_id)
        order_id = generate_order_id()

        try:
            order = await self.gateway.create_order(
                order_id=order_id,
                amount=package["price_cents"] / 100,
                currency=package["currency"],
                customer={"id": user.id, "name": user.name, "email": user.email},
                return_url=f"{settings.frontend_url}/payment/success?order_id={order_id}",
                notify_url=f"{settings.backend_url}/api/payments/webhook",
                note=f"{package['name']} - {package['total_credits']} credits",
            )
        except GatewayNotConfigured as exc:
            raise ServiceUnavailableException(
                "Payment gateway is not configured", code="PAYMENT_GATEWAY_NOT_CONFIGURED"
            ) from exc
        except PaymentGatewayError as exc:
            raise BadGatewayException(str(exc), code="PAYMENT_GATEWAY_ERROR") from exc

        payment = await payment_crud.create(db, obj_in={
            "user_id": user.id,
            "order_id": order_id,
            "provider_payment_id": order.get("cf_order_id") and str(order["cf_order_id"]),
            "payment_session_id": order.get("payment_session_id"),
            "package_id": package["id"],
            "amount_cents": package["price_cents"],
            "currency": package["currency"],
            "credits": package["total_credits"],
            "status": PaymentStatus.PENDING,
            "payment_metadata": {"package_name": package["name"]},
        })
        logger.info("Order {} created for user {} ({})", order_id, user.id, package["id"])

        return {
            "payment_id": payment.id,
            "order_id": order_id,
            "payment_session_id": order.get("payment_session_id"),
            "payment_link": order.get("payment_link"),
            "order_status": order.get("order_status"),
            "amount": package["final_price"],
            "amount_cents": package["price_cents"],
            "currency": package["currency"],
            "credits": package["total_credits"],
            "package": package,
        }

    # ==================== Completion ====================

    async def process_success(self, db: AsyncSession, order_id: str, user: User) -> Dict[str, Any]:
        """Client callback after checkout; verifies the order with the gateway"""
        payment = await payment_crud.get_by_order_id(db, order_id)
        if payment is None or payment.user_id != user.id:
            raise NotFoundException("Payment not found", code="PAYMENT_NOT_FOUND")
        if payment.status == PaymentStatus.COMPLETED:
            return self._result(payment, user, already_processed=True)

        try:
            order = await self.gateway.get_order(order_id)
        except GatewayNotConfigured as exc:
            raise ServiceUnavailableException(
                "Payment gateway is not configured", code="PAYMENT_GATEWAY_NOT_CONFIGURED"
            ) from exc
        except PaymentGatewayError as exc:
            raise BadGatewayException(str(exc), code="PAYMENT_GATEWAY_ERROR") from exc

        if order.get("order_status") != "PAID":
            raise BadRequestException(
                f"Payment not completed (status: {order.get('order_status')})",
                code="PAYMENT_NOT_COMPLETED",
                data={"order_status": order.get("order_status")},
            )

        payment, user, applied = await self._complete(db, payment)
        if applied:
            await self._after_purchase(db, payment, user)
        return self._result(payment, user, already_processed=not applied)

    async def _complete(
        self, db: AsyncSession, payment: Payment, provider_payment_id: Optional[str] = None
    ) -> Tuple[Payment, User, bool]:
        """Mark completed, credit the user and write the ledger entry in one commit"""
        locked = await db.execute(
            select(Payment).where(Payment.id == payment.id).with_for_update()
        )
        payment = locked.scalar_one()
        user = await user_crud.get(db, payment.user_id)
        if payment.status == PaymentStatus.COMPLETED:
            return payment, user, False

        try:
            payment.status = PaymentStatus.COMPLETED
            payment.completed_at = utc_now()
            if provider_payment_id:
                payment.provider_payment_id = provider_payment_id
            await user_crud.add_credits(db, user, payment.credits)
            await credit_transaction_crud.record(
                db,
                user_id=user.id,
                transaction_type=TransactionType.PURCHASE,
                amount=payment.credits,
                description=f"Purchased {payment.credits} credits ({payment.package_id})",
                balance_after=user.credits,
                payment_id=payment.id,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Payment {} completed: {} credits added to user {}", payment.order_id, payment.credits, user.id
        )
        return payment, user, True

    async def _after_purchase(self, db: AsyncSession, payment: Payment, user: User) -> None:
        """Confirmation email, alert and activity; none of them fail the purchase"""
        amount = payment.amount_cents / 100
        details = {
            "credits": payment.credits,
            "package_name": (payment.payment_metadata or {}).get("package_name", payment.package_id),
            "amount": f"{amount:.2f}",
            "currency": payment.currency,
            "order_id": payment.order_id,
        }
        try:
            await email_service.send_credits_purchase_confirmation(db, user, details)
        except Exception as exc:
            logger.error("Failed to send purchase confirmation for {}: {}", payment.order_id, exc)

        await alert_service.send_automatic_alert(
            db, "payment_successful", user,
            amount=f"{amount:.2f}", currency=payment.currency, credits=payment.credits,
        )
        await analytics_service.track_credit_purchase(db, user.id, {
            "order_id": payment.order_id,
            "package_id": payment.package_id,
            "credits": payment.credits,
            "amount_cents": payment.amount_cents,
        })

    @staticmethod
    def _result(payment: Payment, user: User, already_processed: bool) -> Dict[str, Any]:
        return {
            "order_id": payment.order_id,
            "status": payment.status,
            "credits_added": 0 if already_processed else payment.credits,
            "total_credits": user.credits,
            "already_processed": already_processed,
        }

    # ==================== Webhook ====================

    async def handle_webhook(
        self, db: AsyncSession, raw_body: Union[bytes, str], headers: Mapping[str, str]
    ) -> Dict[str, Any]:
        """Verify and apply a Cashfree webhook; every call is logged"""
        signature = headers.get("x-webhook-signature")
        timestamp = headers.get("x-webhook-timestamp")
        valid = self.gateway.verify_webhook_signature(raw_body, signature, timestamp)

        try:
            payload = json.loads(raw_body or b"{}")
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        event_type = payload.get("type") or "UNKNOWN"
        data = payload.get("data") or {}
        order_id = (data.get("order") or {}).get("order_id")

        record = await payment_webhook_crud.log(
            db, event_type=event_type, payload=payload, signature_valid=valid, order_id=order_id
        )
        if not valid:
            logger.warning("Rejected webhook {} with invalid signature (order {})", event_type, order_id)
            await db.commit()
            raise UnauthorizedException("Invalid webhook signature", code="INVALID_SIGNATURE")

        payment = await payment_crud.get_by_order_id(db, order_id) if order_id else None
        if payment is None:
            record.error = "Unknown order"
            logger.warning("Webhook {} for unknown order {}", event_type, order_id)
            return {"event_type": event_type, "processed": False}

        cf_payment_id = (data.get("payment") or {}).get("cf_payment_id")
        if event_type == SUCCESS_EVENT:
            payment, user, applied = await self._complete(
                db, payment, str(cf_payment_id) if cf_payment_id else None
            )
            if applied:
                await self._after_purchase(db, payment, user)
            record.processed = True
            await db.flush()
            return {"event_type": event_type, "processed": True, "already_processed": not applied}

        if event_type == FAILED_EVENT:
            if payment.status == PaymentStatus.PENDING:
                payment.status = PaymentStatus.FAILED
                payment.failure_reason = ((data.get("payment") or {}).get("payment_message") or "Payment failed")[:500]
                logger.info("Payment {} marked failed", payment.order_id)
            record.processed = True
            await db.flush()
            return {"event_type": event_type, "processed": True}

        logger.info("Ignoring webhook event {}", event_type)
        return {"event_type": event_type, "processed": False}

    # ==================== History and admin ====================

    async def history(
        self, db: AsyncSession, user: User, *, page: int = 1, page_size: int = 20
    ) -> Tuple[List[Payment], int]:
        return await payment_crud.list_filtered(db, user_id=user.id, page=page, page_size=page_size)

    async def get_payment(self, db: AsyncSession, payment_id: str, user: Optional[User] = None) -> Payment:
        if user is None:
            payment = await payment_crud.get(db, payment_id)
        else:
            payment = await payment_crud.get_owned(db, payment_id, user.id)
        if payment is None:
            raise NotFoundException("Payment not found", code="PAYMENT_NOT_FOUND")
        return payment

    async def refund(
        self, db: AsyncSession, payment_id: str, reason: Optional[str] = None, admin_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Mark a completed payment refunded and take the credits back (never below zero)"""
        payment = await self.get_payment(db, payment_id)
        if payment.status != PaymentStatus.COMPLETED:
            raise BadRequestException(
                f"Only completed payments can be refunded (status: {payment.status})",
                code="PAYMENT_NOT_REFUNDABLE",
            )
        user = await user_crud.get(db, payment.user_id)
        deducted = min(payment.credits, max(user.credits or 0, 0))

        payment.status = PaymentStatus.REFUNDED
        payment.payment_metadata = {
            **(payment.payment_metadata or {}),
            "refund_reason": reason,
            "refunded_by": admin_id,
            "refunded_at": utc_now().isoformat(),
        }
        await user_crud.add_credits(db, user, -deducted)
        await credit_transaction_crud.record(
            db,
            user_id=user.id,
            transaction_type=TransactionType.REFUND,
            amount=-deducted,
            description=reason or f"Refund of order {payment.order_id}",
            balance_after=user.credits,
            payment_id=payment.id,
        )
        logger.info("Payment {} refunded by {}: {} credits deducted", payment.order_id, admin_id, deducted)
        return {
            "payment_id": payment.id,
            "order_id": payment.order_id,
            "status": payment.status,
            "credits_deducted": deducted,
            "user_credits": user.credits,
        }

    async def stats(self, db: AsyncSession) -> Dict[str, Any]:
        now = utc_now()
        month_start = datetime(now.year, now.month, 1, tzinfo=now.tzinfo)
        total = await payment_crud.revenue(db)
        month = await payment_crud.revenue(db, month_start)
        return {
            "by_status": await payment_crud.count_by_status(db),
            "total_revenue_cents": total["amount_cents"],
            "month_revenue_cents": month["amount_cents"],
            "completed_payments": total["payments"],
            "credits_sold": total["credits"],
            "purchasers": await payment_crud.count_purchasers(db),
            "gateway_configured": self.gateway.is_configured(),
        }


payment_service = PaymentService()
