# skillforge/services/payment.py
import logging
from typing import Dict, List, Optional

from skillforge.core.config import settings
from skillforge.core.database import Database
from skillforge.core.exceptions import (
    Conflict,
    Forbidden,
    NotFound,
    ValidationFailed,
)
from skillforge.core.permissions import Caller, require_ownership
from skillforge.models.payment import PaymentIntent, PaymentStatus
from skillforge.models.user import UserRole
from skillforge.schemas.payment import (
    CreatePaymentIntentRequest,
    PaymentConfirmation,
    PaymentDetails,
    PaymentHistoryItem,
    PaymentIntentResponse,
    PaymentStats,
    ProviderDetails,
    RefundRequest,
    RefundResponse,
)
from skillforge.utils.payment_gateway import PaymentGateway, map_provider_status

logger = logging.getLogger(__name__)

UNKNOWN_COURSE = "Unknown Course"

WEBHOOK_EVENT_STATUSES: Dict[str, PaymentStatus] = {
    "payment_intent.succeeded": PaymentStatus.SUCCEEDED,
    "payment_intent.payment_failed": PaymentStatus.FAILED,
    "payment_intent.canceled": PaymentStatus.CANCELED,
    "charge.refunded": PaymentStatus.REFUNDED,
}


def build_payment_history(db: Database, user_id: str) -> List[PaymentHistoryItem]:
    """The user's payments, newest first, with the course title resolved."""
    items = []
    for payment in db.payments.find_by_user(user_id):
        course = db.courses.find_by_id(payment.course_id)
        items.append(
            PaymentHistoryItem(
                id=payment.id,
                course_id=payment.course_id,
                course_title=course.title if course else UNKNOWN_COURSE,
                amount=payment.amount / 100,
                currency=payment.currency,
                status=payment.status,
                transaction_id=payment.provider_payment_intent_id,
                created_at=payment.created_at,
            )
        )
    return items


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


class PaymentService:
    def __init__(self, db: Database, gateway: PaymentGateway):
        self.db = db
        self.gateway = gateway

    def _find_payment(self, payment_intent_id: str) -> PaymentIntent:
        """Look a payment up by provider id, falling back to the local id."""
        payment = self.db.payments.find_by_provider_id(
            payment_intent_id
        ) or self.db.payments.find_by_id(payment_intent_id)
        if payment is None:
            raise NotFound("Payment not found")
        return payment

    def _resume_pending(
        self, user_id: str, course_id: str
    ) -> Optional[PaymentIntentResponse]:
        """
        Hand back the open intent for (user, course) if the provider still
        considers it payable; otherwise record its final status.
        """
        pending = self.db.payments.find_pending(user_id, course_id)
        if pending is None:
            return None

        intent = self.gateway.retrieve_intent(pending.provider_payment_intent_id)
        status = map_provider_status(intent.status)
        if status == PaymentStatus.PENDING:
            logger.info(f"Resuming payment intent {intent.id} for user {user_id}")
            return PaymentIntentResponse(
                payment_intent_id=intent.id,
                client_secret=intent.client_secret,
                amount=pending.amount,
                currency=pending.currency,
            )

        self.db.payments.transition(pending.id, status)
        if status == PaymentStatus.SUCCEEDED:
            raise Conflict("Course already purchased")
        return None

    def create_intent(
        self, request: CreatePaymentIntentRequest, caller: Caller
    ) -> PaymentIntentResponse:
        course = self.db.courses.find_by_id(request.course_id)
        if course is None:
            raise NotFound("Course not found")
        if not course.is_published:
            raise ValidationFailed("Course is not available for purchase")
        if course.is_free:
            raise ValidationFailed("Course is free; enroll directly")

        user = self.db.users.find_by_id(caller.user_id)
        if user is not None and user.progress_for(course.id) is not None:
            raise Conflict("Already enrolled in this course")
        if self.db.payments.find_successful(caller.user_id, course.id):
            raise Conflict("Course already purchased")

        # The price is only meaningful in the course's own currency
        currency = (course.currency or settings.default_currency).upper()
        if request.currency and request.currency.upper() != currency:
            raise ValidationFailed(f"Payment currency must be {currency}")

        resumed = self._resume_pending(caller.user_id, course.id)
        if resumed is not None:
            return resumed

        amount = to_minor_units(course.price)

        intent = self.gateway.create_intent(
            amount,
            currency,
            metadata={"courseId": course.id, "userId": caller.user_id},
        )

        # create_pending re-checks the purchase of record under the store lock
        self.db.payments.create_pending(
            {
                "amount": amount,
                "currency": currency,
                "course_id": course.id,
                "user_id": caller.user_id,
                "provider_payment_intent_id": intent.id,
            }
        )
        logger.info(
            f"Payment intent {intent.id} created for user {caller.user_id}, course {course.id}"
        )

        return PaymentIntentResponse(
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=amount,
            currency=currency,
        )

    def confirm(self, payment_intent_id: str, caller: Caller) -> PaymentConfirmation:
        payment = self._find_payment(payment_intent_id)
        if payment.user_id != caller.user_id:
            raise Forbidden("Access denied")

        intent = self.gateway.retrieve_intent(payment.provider_payment_intent_id)
        status = map_provider_status(intent.status)
        payment = self.db.payments.transition(payment.id, status)

        if payment.status != PaymentStatus.SUCCEEDED:
            raise ValidationFailed(f"Payment {payment.status.value}")

        return PaymentConfirmation(status=payment.status, course_id=payment.course_id)

    def refund(self, request: RefundRequest, caller: Caller) -> RefundResponse:
        payment = self._find_payment(request.payment_intent_id)
        require_ownership(caller, payment.user_id)

        if payment.status != PaymentStatus.SUCCEEDED:
            raise Conflict(f"Cannot refund a {payment.status.value} payment")

        amount = (
            to_minor_units(request.amount) if request.amount is not None else payment.amount
        )
        if amount > payment.amount:
            raise ValidationFailed("Refund amount exceeds payment amount")

        refund = self.gateway.refund(
            payment.provider_payment_intent_id, amount, request.reason
        )
        updated = self.db.payments.transition(
            payment.id, PaymentStatus.REFUNDED, refunded_amount=amount
        )
        logger.info(f"Payment {payment.id} refunded ({amount} minor units)")

        return RefundResponse(
            refund_id=refund.id, amount=amount / 100, status=updated.status
        )

    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> dict:
        if not signature:
            raise ValidationFailed("Missing Stripe-Signature header")

        event = self.gateway.construct_event(payload, signature)
        status = WEBHOOK_EVENT_STATUSES.get(event.type)
        if status is None:
            logger.info(f"Unhandled webhook event type: {event.type}")
            return {"received": True}

        payment = (
            self.db.payments.find_by_provider_id(event.payment_intent_id)
            if event.payment_intent_id
            else None
        )
        if payment is None:
            logger.warning(
                f"Webhook {event.id} references unknown payment intent "
                f"{event.payment_intent_id}"
            )
            return {"received": True}

        fields = {}
        if status == PaymentStatus.REFUNDED and event.amount_refunded is not None:
            fields["refunded_amount"] = event.amount_refunded

        self.db.payments.transition(payment.id, status, event_id=event.id, **fields)
        return {"received": True}

    def get_payment(self, payment_intent_id: str, caller: Caller) -> PaymentDetails:
        payment = self._find_payment(payment_intent_id)
        require_ownership(caller, payment.user_id)

        intent = self.gateway.retrieve_intent(payment.provider_payment_intent_id)
        course = self.db.courses.find_by_id(payment.course_id)
        return PaymentDetails(
            id=payment.id,
            user_id=payment.user_id,
            course_id=payment.course_id,
            course_title=course.title if course else UNKNOWN_COURSE,
            amount=payment.amount / 100,
            refunded_amount=payment.refunded_amount / 100,
            currency=payment.currency,
            status=payment.status,
            transaction_id=payment.provider_payment_intent_id,
            created_at=payment.created_at,
            updated_at=payment.updated_at,
            provider_details=ProviderDetails(
                status=intent.status,
                amount=intent.amount / 100,
                currency=intent.currency.upper(),
            ),
        )

    def get_stats(self, caller: Caller) -> PaymentStats:
        course_ids = None
        if caller.role == UserRole.INSTRUCTOR:
            course_ids = [c.id for c in self.db.courses.find_by_instructor(caller.user_id)]

        stats = self.db.payments.stats(course_ids)
        return PaymentStats(
            total_revenue=stats["total_revenue"] / 100,
            total_transactions=stats["total_transactions"],
            successful_payments=stats["successful_payments"],
            failed_payments=stats["failed_payments"],
            refunded_amount=stats["refunded_amount"] / 100,
            average_order_value=round(stats["average_order_value"] / 100, 2),
        )
