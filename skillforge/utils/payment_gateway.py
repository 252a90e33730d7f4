# skillforge/utils/payment_gateway.py
"""
Stripe payment gateway

The services only see PaymentGateway and its plain result models, so tests
can substitute an in-process fake.
"""

import logging
from typing import Dict, Optional

import stripe
from pydantic import BaseModel

from skillforge.core.config import Settings, settings
from skillforge.core.exceptions import UpstreamUnavailable, ValidationFailed
from skillforge.models.payment import PaymentStatus

logger = logging.getLogger(__name__)

_PENDING_STATUSES = {
    "processing",
    "requires_payment_method",
    "requires_confirmation",
    "requires_action",
    "requires_capture",
}


def map_provider_status(provider_status: str) -> PaymentStatus:
    """Map a Stripe PaymentIntent status onto the local payment status."""
    if provider_status == "succeeded":
        return PaymentStatus.SUCCEEDED
    if provider_status in _PENDING_STATUSES:
        return PaymentStatus.PENDING
    if provider_status == "canceled":
        return PaymentStatus.CANCELED
    return PaymentStatus.FAILED


class GatewayIntent(BaseModel):
    id: str
    client_secret: str = ""
    status: str
    amount: int
    currency: str


class GatewayRefund(BaseModel):
    id: str
    status: str
    amount: int


class GatewayEvent(BaseModel):
    id: str
    type: str
    payment_intent_id: Optional[str] = None
    amount_refunded: Optional[int] = None


class PaymentGateway:
    """Interface the payment service depends on."""

    def create_intent(
        self, amount: int, currency: str, metadata: Dict[str, str]
    ) -> GatewayIntent:
        raise NotImplementedError

    def retrieve_intent(self, intent_id: str) -> GatewayIntent:
        raise NotImplementedError

    def refund(
        self, intent_id: str, amount: Optional[int] = None, reason: Optional[str] = None
    ) -> GatewayRefund:
        raise NotImplementedError

    def construct_event(self, payload: bytes, signature: str) -> GatewayEvent:
        raise NotImplementedError


class StripeGateway(PaymentGateway):
    def __init__(self, config: Settings = settings):
        self.secret_key = config.stripe_secret_key
        self.webhook_secret = config.stripe_webhook_secret

        stripe.max_network_retries = 0
        stripe.default_http_client = stripe.RequestsClient(timeout=config.payment_timeout)

        if not self.secret_key:
            logger.warning(
                "STRIPE_SECRET_KEY not configured. Payment features will not work."
            )

    def _ensure_configured(self):
        if not self.secret_key:
            raise UpstreamUnavailable("Payment service not configured")

    @staticmethod
    def _to_intent(intent) -> GatewayIntent:
        return GatewayIntent(
            id=intent["id"],
            client_secret=intent.get("client_secret") or "",
            status=intent["status"],
            amount=intent["amount"],
            currency=intent["currency"],
        )

    def create_intent(
        self, amount: int, currency: str, metadata: Dict[str, str]
    ) -> GatewayIntent:
        self._ensure_configured()
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.secret_key,
                amount=amount,
                currency=currency.lower(),
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe payment intent creation error: {e}")
            raise UpstreamUnavailable("Failed to create payment intent")
        return self._to_intent(intent)

    def retrieve_intent(self, intent_id: str) -> GatewayIntent:
        self._ensure_configured()
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=self.secret_key)
        except stripe.StripeError as e:
            logger.error(f"Stripe payment intent retrieval error: {e}")
            raise UpstreamUnavailable("Failed to retrieve payment intent")
        return self._to_intent(intent)

    def refund(
        self, intent_id: str, amount: Optional[int] = None, reason: Optional[str] = None
    ) -> GatewayRefund:
        self._ensure_configured()
        params = {"payment_intent": intent_id}
        if amount is not None:
            params["amount"] = amount
        if reason:
            params["metadata"] = {"reason": reason}
        try:
            refund = stripe.Refund.create(api_key=self.secret_key, **params)
        except stripe.StripeError as e:
            logger.error(f"Stripe refund error: {e}")
            raise UpstreamUnavailable("Failed to create refund")
        return GatewayRefund(
            id=refund["id"], status=refund["status"], amount=refund["amount"]
        )

    def construct_event(self, payload: bytes, signature: str) -> GatewayEvent:
        if not self.webhook_secret:
            raise UpstreamUnavailable("Webhook secret not configured")
        try:
            event = stripe.Webhook.construct_event(
                payload, signature, self.webhook_secret
            )
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise ValidationFailed("Webhook signature verification failed")

        obj = event["data"]["object"]
        if obj.get("object") == "charge":
            intent_id = obj.get("payment_intent")
            amount_refunded = obj.get("amount_refunded")
        else:
            intent_id = obj.get("id")
            amount_refunded = None

        return GatewayEvent(
            id=event["id"],
            type=event["type"],
            payment_intent_id=intent_id,
            amount_refunded=amount_refunded,
        )
