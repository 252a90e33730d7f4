# skillforge/routers/payment.py
from fastapi import APIRouter, Depends, Header, Query, Request

from skillforge.core.config import settings
from skillforge.core.database import Database, get_db
from skillforge.core.dependencies import authenticate, authorize, get_payment_gateway
from skillforge.core.permissions import Caller
from skillforge.models.user import UserRole
from skillforge.schemas.payment import (
    ConfirmPaymentRequest,
    CreatePaymentIntentRequest,
    RefundRequest,
)
from skillforge.services.payment import PaymentService, build_payment_history
from skillforge.utils.payment_gateway import PaymentGateway
from skillforge.utils.response import paginate, success_response

router = APIRouter(prefix="/api/payments", tags=["Payments"])


def get_payment_service(
    db: Database = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentService:
    return PaymentService(db, gateway)


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="Stripe-Signature"),
    service: PaymentService = Depends(get_payment_service),
):
    """
    Stripe webhook receiver. Authenticated by the signature header, not a token;
    the raw body is needed for verification.
    """
    payload = await request.body()
    return service.handle_webhook(payload, stripe_signature)


@router.post("/create-intent")
def create_payment_intent(
    intent_in: CreatePaymentIntentRequest,
    caller: Caller = Depends(authenticate),
    service: PaymentService = Depends(get_payment_service),
):
    intent = service.create_intent(intent_in, caller)
    return success_response(intent, "Payment intent created successfully")


@router.post("/confirm")
def confirm_payment(
    confirm_in: ConfirmPaymentRequest,
    caller: Caller = Depends(authenticate),
    service: PaymentService = Depends(get_payment_service),
):
    confirmation = service.confirm(confirm_in.payment_intent_id, caller)
    return success_response(confirmation, "Payment confirmed successfully")


@router.post("/refund")
def refund_payment(
    refund_in: RefundRequest,
    caller: Caller = Depends(authenticate),
    service: PaymentService = Depends(get_payment_service),
):
    refund = service.refund(refund_in, caller)
    return success_response(refund, "Refund processed successfully")


@router.get("/history")
def payment_history(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=100),
    db: Database = Depends(get_db),
    caller: Caller = Depends(authenticate),
):
    """Caller's payments, newest first"""
    items, pagination = paginate(build_payment_history(db, caller.user_id), page, limit)
    return success_response(
        items, "Payment history retrieved successfully", pagination
    )


@router.get("/stats/overview")
def payment_stats(
    caller: Caller = Depends(authorize(UserRole.INSTRUCTOR, UserRole.ADMIN)),
    service: PaymentService = Depends(get_payment_service),
):
    """Revenue overview: an instructor sees their own courses, an admin sees all"""
    return success_response(
        service.get_stats(caller), "Payment stats retrieved successfully"
    )


@router.get("/{payment_intent_id}")
def get_payment(
    payment_intent_id: str,
    caller: Caller = Depends(authenticate),
    service: PaymentService = Depends(get_payment_service),
):
    return success_response(
        service.get_payment(payment_intent_id, caller),
        "Payment details retrieved successfully",
    )
