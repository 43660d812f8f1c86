"""
Payment and credit ledger models - SQLModel
"""
from datetime import datetime
from typing import Any, Dict, Optional
from sqlmodel import Field, Column, JSON

from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse, DateTimeField, utc_now


class PaymentStatus:
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"

    ALL = (PENDING, COMPLETED, FAILED, REFUNDED)


class TransactionType:
    PURCHASE = "purchase"
    USAGE = "usage"
    REFUND = "refund"
    BONUS = "bonus"
    ADMIN_ADJUSTMENT = "admin_adjustment"


# ==================== Table models ====================

class Payment(TimestampMixin, IDMixin, table=True):
    """Credit purchase through the payment gateway"""
    __tablename__ = "payments"

    user_id: str = Field(..., foreign_key="users.id", ondelete="CASCADE", index=True)
    provider: str = Field(default="cashfree", max_length=30)
    order_id: str = Field(..., max_length=100, unique=True, index=True)
    provider_payment_id: Optional[str] = Field(None, max_length=100)
    payment_session_id: Optional[str] = Field(None, max_length=512)
    package_id: str = Field(..., max_length=50)
    amount_cents: int = Field(..., ge=0)
    currency: str = Field(default="INR", max_length=10)
    credits: int = Field(..., ge=0)
    status: str = Field(default=PaymentStatus.PENDING, max_length=20, index=True)
    failure_reason: Optional[str] = Field(None, max_length=500)
    completed_at: Optional[datetime] = DateTimeField(None)
    payment_metadata: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON)
    )

    def __repr__(self) -> str:
        return f"<Payment(order_id={self.order_id}, status={self.status})>"


class CreditTransaction(IDMixin, table=True):
    """Credit ledger entry; amount is signed"""
    __tablename__ = "credit_transactions"

    user_id: str = Field(..., foreign_key="users.id", ondelete="CASCADE", index=True)
    session_id: Optional[str] = Field(None, foreign_key="sessions.id", ondelete="CASCADE", index=True)
    payment_id: Optional[str] = Field(None, foreign_key="payments.id", ondelete="SET NULL")
    transaction_type: str = Field(..., max_length=30, index=True)
    amount: int = Field(...)
    balance_after: Optional[int] = None
    description: Optional[str] = Field(None, max_length=500)
    created_at: datetime = DateTimeField(default_factory=utc_now, index=True)


class PaymentWebhook(IDMixin, table=True):
    """Raw gateway webhook log"""
    __tablename__ = "payment_webhooks"

    provider: str = Field(default="cashfree", max_length=30)
    event_type: str = Field(..., max_length=100)
    order_id: Optional[str] = Field(None, max_length=100, index=True)
    signature_valid: bool = Field(default=False)
    processed: bool = Field(default=False)
    payload: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    error: Optional[str] = Field(None, max_length=500)
    created_at: datetime = DateTimeField(default_factory=utc_now)


# ==================== Request schemas ====================

class CreateOrderRequest(SQLModelBase):
    package_id: str = Field(..., min_length=1)


class ProcessSuccessRequest(SQLModelBase):
    order_id: str = Field(..., min_length=1)


class RefundRequest(SQLModelBase):
    reason: Optional[str] = Field(None, max_length=255)


# ==================== Response schemas ====================

class PaymentResponse(TimestampResponse):
    user_id: str
    provider: str
    order_id: str
    provider_payment_id: Optional[str]
    package_id: str
    amount_cents: int
    currency: str
    credits: int
    status: str
    failure_reason: Optional[str]
    completed_at: Optional[datetime]


class CreditTransactionResponse(SQLModelBase):
    id: str
    user_id: str
    session_id: Optional[str]
    payment_id: Optional[str]
    transaction_type: str
    amount: int
    balance_after: Optional[int]
    description: Optional[str]
    created_at: datetime
