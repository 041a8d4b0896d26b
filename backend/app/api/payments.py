"""
Payments API Endpoints
M-Pesa STK Push, Paystack, Stripe webhooks and billing history

Vendor callbacks (M-Pesa, Paystack, Stripe) are unauthenticated; everything
else acts with the signed-in business's own gateway credentials.
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, Field

from app.connectors.errors import WebhookSignatureError
from app.connectors.stripe_webhook import StripeWebhookVerifier
from app.core.auth import AuthUser, get_current_user
from app.core.config import settings
from app.core.errors import InvalidRequestError
from app.services.payment_service import MPESA_INVALID, PaymentService, payment_success_url

logger = logging.getLogger(__name__)

router = APIRouter()

PAYSTACK_ACTIONS = ("initiate_payment", "verify_payment", "check_status")


def get_payment_service() -> PaymentService:
    return PaymentService()


# Request models
class StkPushRequest(BaseModel):
    phone_number: str = Field(..., min_length=9)
    amount: float = Field(..., gt=0)
    account_reference: Optional[str] = Field(None, max_length=64)
    description: Optional[str] = None


class StkQueryRequest(BaseModel):
    checkout_request_id: str = Field(..., min_length=1)
    expected_amount: Optional[float] = None


class PaystackRequest(BaseModel):
    action: str
    amount: Optional[float] = Field(None, gt=0)
    currency: str = "KES"
    description: Optional[str] = None
    reference: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_name: Optional[str] = None
    callback_url: Optional[str] = None


# ========================================
# M-Pesa
# ========================================

@router.post("/mpesa/stk-push")
async def stk_push(
    request: StkPushRequest,
    user: AuthUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    result = await service.initiate_stk_push(
        user.id,
        request.phone_number,
        request.amount,
        account_reference=request.account_reference,
        description=request.description,
    )
    if not result["success"]:
        return JSONResponse(status_code=400, content=result)
    return result


@router.post("/mpesa/query-status")
async def stk_query_status(
    request: StkQueryRequest,
    user: AuthUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return await service.query_stk_status(user.id, request.checkout_request_id, request.expected_amount)


@router.post("/mpesa/callback")
async def mpesa_callback(request: Request, service: PaymentService = Depends(get_payment_service)):
    """Daraja result callback; always answered with a ResultCode body"""
    raw = await request.body()
    try:
        body = json.loads(raw or b"{}")
    except ValueError:
        logger.error("M-Pesa callback body is not JSON")
        return MPESA_INVALID

    logger.info("M-Pesa callback received")
    return service.handle_mpesa_callback(body)


# ========================================
# Paystack
# ========================================

@router.post("/paystack")
async def paystack(
    request: PaystackRequest,
    user: AuthUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    logger.info(f"Paystack action: {request.action} userId: {user.id}")

    if request.action == "initiate_payment":
        return await service.initiate_paystack_payment(
            user.id,
            request.amount,
            request.description,
            request.reference,
            currency=request.currency,
            customer_email=request.customer_email,
            customer_phone=request.customer_phone,
            customer_name=request.customer_name,
            callback_url=request.callback_url,
        )

    if request.action in ("verify_payment", "check_status"):
        result = await service.verify_paystack_payment(user.id, request.reference)
        return result

    raise InvalidRequestError(
        f"Unknown action: {request.action}. Supported actions: {', '.join(PAYSTACK_ACTIONS)}"
    )


@router.get("/paystack/callback")
async def paystack_redirect(
    reference: Optional[str] = Query(None),
    trxref: Optional[str] = Query(None),
    service: PaymentService = Depends(get_payment_service),
):
    """Customer lands here after the hosted checkout; settle, then send them to the app"""
    tx_reference = reference or trxref
    if not tx_reference:
        logger.error("Missing reference in callback")
        return JSONResponse(status_code=400, content={"success": False, "error": "Missing transaction reference"})

    logger.info(f"Paystack callback received: {tx_reference}")
    await service.process_paystack_reference(tx_reference)

    return RedirectResponse(payment_success_url(tx_reference), status_code=302)


@router.post("/paystack/callback")
async def paystack_webhook(
    request: Request,
    x_paystack_signature: Optional[str] = Header(None),
    service: PaymentService = Depends(get_payment_service),
):
    body = await request.body()
    try:
        reference = await service.handle_paystack_webhook(body, x_paystack_signature)
    except WebhookSignatureError as e:
        logger.warning(f"Rejected Paystack webhook: {e.message}")
        raise HTTPException(status_code=401, detail=e.message)

    return {"success": True, "reference": reference}


# ========================================
# Stripe
# ========================================

@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    service: PaymentService = Depends(get_payment_service),
):
    payload = await request.body()
    try:
        event = StripeWebhookVerifier(settings.STRIPE_WEBHOOK_SECRET).construct_event(payload, stripe_signature)
    except WebhookSignatureError as e:
        logger.warning(f"Rejected Stripe webhook: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")

    service.handle_stripe_event(event)
    return {"received": True}


# ========================================
# History
# ========================================

@router.get("/history")
async def billing_history(
    user: AuthUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    history = service.list_billing_history(user.id)
    return {"status": "success", "count": len(history), "data": history}
