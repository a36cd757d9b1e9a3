"""
Pydantic models for payments
"""
from datetime import datetime
from enum import Enum
from pydantic import BaseModel
from typing import Optional


class PaymentStatus(str, Enum):
    NEW = "NEW"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELED = "CANCELED"
    REJECTED = "REJECTED"
    REFUNDED = "REFUNDED"


# Statuses a payment can still leave; the rest are final
OPEN_PAYMENT_STATUSES = (PaymentStatus.NEW, PaymentStatus.PENDING)


# Gateway statuses outside the fixed set, folded onto it
_GATEWAY_STATUS_MAP = {
    "FORM_SHOWED": PaymentStatus.PENDING,
    "AUTHORIZING": PaymentStatus.PENDING,
    "AUTHORIZED": PaymentStatus.PENDING,
    "CONFIRMING": PaymentStatus.PENDING,
    "3DS_CHECKING": PaymentStatus.PENDING,
    "3DS_CHECKED": PaymentStatus.PENDING,
    "REVERSING": PaymentStatus.CANCELED,
    "REVERSED": PaymentStatus.CANCELED,
    "PARTIAL_REVERSED": PaymentStatus.CANCELED,
    "DEADLINE_EXPIRED": PaymentStatus.CANCELED,
    "AUTH_FAIL": PaymentStatus.REJECTED,
    "REFUNDING": PaymentStatus.REFUNDED,
    "PARTIAL_REFUNDED": PaymentStatus.REFUNDED,
}


def normalize_gateway_status(raw: str) -> PaymentStatus:
    """Map a Tinkoff status string onto the local payment state set"""
    raw = (raw or "").upper()
    try:
        return PaymentStatus(raw)
    except ValueError:
        return _GATEWAY_STATUS_MAP.get(raw, PaymentStatus.PENDING)


class Payment(BaseModel):
    """One row per payment attempt"""
    id: Optional[int] = None
    user_id: int
    gateway_id: str = ""
    order_id: str
    amount: int
    original_amount: int
    discount_percent: int = 0
    status: PaymentStatus = PaymentStatus.NEW
    payment_url: str = ""
    description: str = ""
    promocode_id: Optional[int] = None
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


class CreatePaymentRequest(BaseModel):
    user_id: int
