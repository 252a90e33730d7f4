from enum import Enum
from typing import Dict, FrozenSet, List

from pydantic import Field

from skillforge.models.base import Record


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    REFUNDED = "refunded"


# Allowed moves out of each status; anything not listed is terminal.
PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset(
        {PaymentStatus.SUCCEEDED, PaymentStatus.FAILED, PaymentStatus.CANCELED}
    ),
    PaymentStatus.SUCCEEDED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.CANCELED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}


class PaymentIntent(Record):
    amount: int = Field(ge=0)
    currency: str
    status: PaymentStatus = PaymentStatus.PENDING
    course_id: str
    user_id: str
    provider_payment_intent_id: str
    refunded_amount: int = 0
    processed_event_ids: List[str] = Field(default_factory=list)

    def can_transition(self, target: PaymentStatus) -> bool:
        return target in PAYMENT_TRANSITIONS[self.status]
