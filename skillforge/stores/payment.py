import logging
from typing import List, Optional, Sequence

from skillforge.core.exceptions import Conflict
from skillforge.core.store import EntityStore
from skillforge.models.payment import PaymentIntent, PaymentStatus

logger = logging.getLogger(__name__)


class PaymentStore(EntityStore[PaymentIntent]):
    model = PaymentIntent
    id_prefix = "pay"

    def find_by_provider_id(self, provider_id: str) -> Optional[PaymentIntent]:
        return self.find_one(lambda p: p.provider_payment_intent_id == provider_id)

    def find_by_user(self, user_id: str) -> List[PaymentIntent]:
        payments = list(self.find_by(lambda p: p.user_id == user_id))
        return sorted(payments, key=lambda p: p.created_at, reverse=True)

    def find_by_course(self, course_id: str) -> List[PaymentIntent]:
        return list(self.find_by(lambda p: p.course_id == course_id))

    def find_successful(self, user_id: str, course_id: str) -> Optional[PaymentIntent]:
        """The purchase of record: earliest succeeded payment for (user, course)."""
        return self.find_one(
            lambda p: p.user_id == user_id,
            lambda p: p.course_id == course_id,
            lambda p: p.status == PaymentStatus.SUCCEEDED,
        )

    def find_pending(self, user_id: str, course_id: str) -> Optional[PaymentIntent]:
        return self.find_one(
            lambda p: p.user_id == user_id,
            lambda p: p.course_id == course_id,
            lambda p: p.status == PaymentStatus.PENDING,
        )

    def create_pending(self, fields: dict) -> PaymentIntent:
        """
        Open a pending payment for (user, course).

        At most one payment per pair is pending at a time.
        """
        with self.locked():
            if self.find_successful(fields["user_id"], fields["course_id"]):
                raise Conflict("Course already purchased")
            if self.find_pending(fields["user_id"], fields["course_id"]):
                raise Conflict("A payment for this course is already in progress")
            return self.create({**fields, "status": PaymentStatus.PENDING})

    def transition(
        self,
        payment_id: str,
        status: PaymentStatus,
        event_id: Optional[str] = None,
        **fields,
    ) -> Optional[PaymentIntent]:
        """
        Move a payment to a new status.

        Returns the stored record unchanged when the event was already applied,
        when the payment is already in the target status, or when the state
        machine forbids the move. Returns None if the payment does not exist.
        """
        with self.locked():
            payment = self.find_by_id(payment_id)
            if payment is None:
                return None

            if event_id and event_id in payment.processed_event_ids:
                logger.info(f"Event {event_id} already applied to payment {payment_id}")
                return payment

            if payment.status == status:
                if event_id:
                    return self.update(
                        payment_id,
                        {"processed_event_ids": [*payment.processed_event_ids, event_id]},
                    )
                return payment

            if not payment.can_transition(status):
                logger.warning(
                    f"Ignoring transition {payment.status.value} -> {status.value} "
                    f"for payment {payment_id}"
                )
                return payment

            partial = dict(fields)
            partial["status"] = status
            if event_id:
                partial["processed_event_ids"] = [
                    *payment.processed_event_ids,
                    event_id,
                ]
            updated = self.update(payment_id, partial)
            logger.info(
                f"Payment {payment_id}: {payment.status.value} -> {status.value}"
            )
            return updated

    def stats(self, course_ids: Optional[Sequence[str]] = None) -> dict:
        """Aggregate counters in minor units, optionally restricted to courses."""
        if course_ids is None:
            payments = self.all()
        else:
            wanted = set(course_ids)
            payments = list(self.find_by(lambda p: p.course_id in wanted))

        successful = [p for p in payments if p.status == PaymentStatus.SUCCEEDED]
        refunded = [p for p in payments if p.status == PaymentStatus.REFUNDED]
        revenue = sum(p.amount for p in successful)

        return {
            "total_revenue": revenue,
            "total_transactions": len(payments),
            "successful_payments": len(successful),
            "failed_payments": sum(
                1 for p in payments if p.status == PaymentStatus.FAILED
            ),
            "refunded_amount": sum(p.refunded_amount or p.amount for p in refunded),
            "average_order_value": revenue / len(successful) if successful else 0,
        }
