from datetime import datetime
from typing import Optional

from pydantic import Field

from skillforge.models.base import CamelModel
from skillforge.models.payment import PaymentStatus


class CreatePaymentIntentRequest(CamelModel):
    course_id: str = Field(..., min_length=1)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class ConfirmPaymentRequest(CamelModel):
    payment_intent_id: str = Field(..., min_length=1)


class RefundRequest(CamelModel):
    payment_intent_id: str = Field(..., min_length=1)
    amount: Optional[float] = Field(None, gt=0)
    reason: Optional[str] = Field(None, max_length=500)


class PaymentIntentResponse(CamelModel):
    payment_intent_id: str
    client_secret: str
    amount: int
    currency: str


class PaymentConfirmation(CamelModel):
    status: PaymentStatus
    course_id: str


class RefundResponse(CamelModel):
    refund_id: str
    amount: float
    status: PaymentStatus


class PaymentHistoryItem(CamelModel):
    id: str
    course_id: str
    course_title: str
    amount: float
    currency: str
    status: PaymentStatus
    transaction_id: str
    created_at: datetime


class ProviderDetails(CamelModel):
    """The intent as the payment provider currently reports it"""

    status: str
    amount: float
    currency: str


class PaymentDetails(PaymentHistoryItem):
    user_id: str
    refunded_amount: float = 0
    updated_at: datetime
    provider_details: ProviderDetails


class PaymentStats(CamelModel):
    total_revenue: float
    total_transactions: int
    successful_payments: int
    failed_payments: int
    refunded_amount: float
    average_order_value: float
