"""
Payment Service
M-Pesa STK Push, Paystack checkout and the vendor callbacks that settle
subscription and invoice payments

Handles:
- STK Push initiation and status polling with the business's Daraja app
- M-Pesa result callbacks (completed / failed payment rows)
- Paystack initialize / verify and its redirect + webhook callback
- Stripe webhook events
- Billing history
"""
import json
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from app.connectors.errors import (
    ConnectorAuthError,
    ConnectorResponseError,
    ConnectorUnavailableError,
)
from app.connectors.mpesa_connector import MpesaConnector
from app.connectors.paystack_connector import PaystackConnector
from app.core.config import settings
from app.core.constants import DEFAULT_PAID_PLAN
from app.core.errors import (
    CredentialsNotConfiguredError,
    InvalidRequestError,
    ResourceNotFoundError,
    VendorAuthError,
    VendorUnavailableError,
)
from app.domain.payment import (
    PaymentTransaction,
    is_invoice_reference,
    parse_subscription_reference,
)
from app.domain.profile import BusinessProfile, one_month_from
from app.repositories import InvoiceRepository, PaymentRepository, ProfileRepository

logger = logging.getLogger(__name__)

MPESA_ACK = {"ResultCode": 0, "ResultDesc": "Success"}
MPESA_INVALID = {"ResultCode": 1, "ResultDesc": "Invalid callback format"}

# Daraja STK result codes
RESULT_SUCCESS = "0"
RESULT_PENDING = "1"
RESULT_CANCELLED = "1032"
RESULT_TIMEOUT = "1037"

DEFAULT_PAYSTACK_EMAIL = "customer@example.com"


def to_minor_units(amount: Any) -> int:
    """KES 150.5 -> 15050 (half up)"""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: Any) -> Decimal:
    return Decimal(str(amount or 0)) / 100


def callback_items(stk_callback: Dict[str, Any]) -> Dict[str, Any]:
    """CallbackMetadata.Item [{Name, Value}, ...] -> {Name: Value}"""
    metadata = stk_callback.get("CallbackMetadata") or {}
    return {
        item["Name"]: item.get("Value")
        for item in metadata.get("Item") or []
        if isinstance(item, dict) and "Name" in item
    }


def paystack_reference_from_event(event: Dict[str, Any]) -> Optional[str]:
    """Reference of a charge.success webhook event, None for other events"""
    if event.get("event") == "charge.success" and event.get("data"):
        return event["data"].get("reference")
    return None


def paystack_owner_id(payload: Dict[str, Any]) -> Optional[str]:
    """user_id in data.metadata of a webhook event or verify response"""
    metadata = (payload.get("data") or {}).get("metadata")
    if isinstance(metadata, dict) and metadata.get("user_id"):
        return str(metadata["user_id"])
    return None


def payment_success_url(reference: str) -> str:
    return f"{settings.APP_PUBLIC_URL.rstrip('/')}/payment-success?reference={quote(reference)}"


class PaymentService:
    """Payment flows over the profile, payment and invoice repositories"""

    def __init__(self):
        self.profile_repo = ProfileRepository()
        self.payment_repo = PaymentRepository()
        self.invoice_repo = InvoiceRepository()

    # ========================================
    # Helpers
    # ========================================

    def _get_profile(self, user_id: str) -> BusinessProfile:
        profile = self.profile_repo.get_by_user_id(user_id)
        if not profile:
            raise ResourceNotFoundError("Profile", user_id)
        return profile

    def _mpesa_connector(self, profile: BusinessProfile) -> MpesaConnector:
        if not profile.has_mpesa_credentials:
            raise CredentialsNotConfiguredError(
                "M-Pesa credentials not configured",
                hint="Please add your Daraja API keys in settings.",
            )
        return MpesaConnector(
            consumer_key=profile.mpesa_consumer_key,
            consumer_secret=profile.mpesa_consumer_secret,
            shortcode=profile.mpesa_shortcode,
            passkey=profile.mpesa_passkey,
        )

    def _paystack_connector(self, profile: BusinessProfile) -> PaystackConnector:
        if not profile.paystack_secret_key:
            raise CredentialsNotConfiguredError(
                "Paystack API credentials not configured",
                hint="Please add your Paystack Secret Key in Settings.",
            )
        return PaystackConnector(profile.paystack_secret_key)

    async def _mpesa_token(self, connector: MpesaConnector) -> str:
        try:
            return await connector.get_access_token()
        except ConnectorAuthError as e:
            raise VendorAuthError(e.message)
        except ConnectorUnavailableError as e:
            raise VendorUnavailableError(e.message)

    # ========================================
    # M-Pesa STK Push
    # ========================================

    async def initiate_stk_push(
        self,
        user_id: str,
        phone_number: str,
        amount: Any,
        account_reference: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Prompt the customer's handset for payment

        Subscription references (SUB_...) get a pending payment row keyed by
        the CheckoutRequestID so the callback can settle it.
        """
        profile = self._get_profile(user_id)
        connector = self._mpesa_connector(profile)

        if not phone_number or not amount:
            raise InvalidRequestError("Phone number and amount are required")

        logger.info(f"Processing STK Push for user {user_id}: {phone_number}, KES {amount}")

        token = await self._mpesa_token(connector)
        try:
            response = await connector.stk_push(
                token,
                phone_number,
                float(amount),
                account_reference=account_reference,
                description=description,
            )
        except ConnectorUnavailableError as e:
            raise VendorUnavailableError(e.message)

        if response.get("ResponseCode") != RESULT_SUCCESS:
            return {
                "success": False,
                "error": response.get("errorMessage") or response.get("ResponseDescription") or "STK Push failed",
                "details": response,
            }

        checkout_request_id = response.get("CheckoutRequestID")
        merchant_request_id = response.get("MerchantRequestID")

        parsed = parse_subscription_reference(account_reference)
        if parsed and checkout_request_id:
            _, plan = parsed
            self.payment_repo.create(PaymentTransaction(
                user_id=user_id,
                amount=Decimal(str(amount)),
                currency="KES",
                payment_method="mpesa",
                payment_reference=account_reference,
                transaction_id=checkout_request_id,
                subscription_plan=plan,
                status="pending",
                description=description,
                metadata={"merchantRequestId": merchant_request_id, "checkoutRequestId": checkout_request_id},
            ))

        return {
            "success": True,
            "message": "STK Push sent successfully. Check your phone for the payment prompt.",
            "checkout_request_id": checkout_request_id,
            "merchant_request_id": merchant_request_id,
        }

    async def query_stk_status(
        self,
        user_id: str,
        checkout_request_id: str,
        expected_amount: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Poll Daraja and map the ResultCode onto pending/success/failed/cancelled"""
        if not checkout_request_id:
            raise InvalidRequestError("checkoutRequestId is required")

        profile = self._get_profile(user_id)
        connector = self._mpesa_connector(profile)
        token = await self._mpesa_token(connector)

        try:
            response = await connector.stk_query(token, checkout_request_id)
        except ConnectorUnavailableError as e:
            raise VendorUnavailableError(e.message)

        raw_code = response.get("ResultCode")
        result_code = str(raw_code) if raw_code is not None else None

        status = "pending"
        message = response.get("ResultDesc") or "Processing..."
        receipt = amount = phone = transaction_date = None

        if result_code == RESULT_SUCCESS:
            status = "success"
            message = "Payment successful"

            items = callback_items(response)
            receipt = items.get("MpesaReceiptNumber")
            if items.get("Amount") is not None:
                amount = float(items["Amount"])
            if items.get("PhoneNumber") is not None:
                phone = str(items["PhoneNumber"])
            if items.get("TransactionDate") is not None:
                transaction_date = str(items["TransactionDate"])

            if expected_amount and amount and abs(amount - float(expected_amount)) > 0.01:
                logger.warning(f"Amount mismatch: expected {expected_amount}, got {amount}")

            logger.info(f"Payment successful - Receipt: {receipt}, Amount: {amount}, Phone: {phone}")
        elif result_code == RESULT_CANCELLED:
            status = "cancelled"
            message = "Payment was cancelled by user"
        elif result_code == RESULT_TIMEOUT:
            status = "failed"
            message = "Payment request timed out"
        elif result_code == RESULT_PENDING:
            message = "Waiting for payment..."
        elif result_code is not None:
            status = "failed"
            message = response.get("ResultDesc") or "Payment failed"

        return {
            "status": status,
            "message": message,
            "result_code": raw_code,
            "checkout_request_id": checkout_request_id,
            "mpesa_receipt_number": receipt,
            "transaction_amount": amount,
            "phone_number": phone,
            "transaction_date": transaction_date,
        }

    def handle_mpesa_callback(self, body: Any) -> Dict[str, Any]:
        """
        Settle an STK Push from Daraja's result callback

        Daraja always gets the success acknowledgement once the body has the
        expected shape; bookkeeping errors are logged.
        """
        stk_callback = None
        if isinstance(body, dict) and isinstance(body.get("Body"), dict):
            stk_callback = body["Body"].get("stkCallback")

        if not isinstance(stk_callback, dict):
            logger.error("Invalid M-Pesa callback format")
            return MPESA_INVALID

        try:
            if str(stk_callback.get("ResultCode")) == RESULT_SUCCESS:
                self._settle_mpesa_success(stk_callback)
            else:
                self._settle_mpesa_failure(stk_callback)
        except Exception:
            logger.exception(f"Error processing M-Pesa callback {stk_callback.get('CheckoutRequestID')}")

        return MPESA_ACK

    def _mpesa_payer(self, stk_callback: Dict[str, Any]):
        """
        Find who paid: the pending row from initiate_stk_push, else a
        SUB_{user}_{plan} merchant reference
        """
        checkout_request_id = stk_callback.get("CheckoutRequestID")
        if checkout_request_id:
            pending = self.payment_repo.find_by_transaction_id(checkout_request_id)
            if pending:
                return pending, pending.user_id, pending.subscription_plan or DEFAULT_PAID_PLAN

        parsed = parse_subscription_reference(stk_callback.get("MerchantRequestID"))
        if parsed:
            return None, parsed[0], parsed[1]

        return None, None, None

    def _settle_mpesa_success(self, stk_callback: Dict[str, Any]) -> None:
        checkout_request_id = stk_callback.get("CheckoutRequestID")
        merchant_request_id = stk_callback.get("MerchantRequestID")
        items = callback_items(stk_callback)

        logger.info(
            f"M-Pesa payment successful: checkout={checkout_request_id} "
            f"amount={items.get('Amount')} receipt={items.get('MpesaReceiptNumber')}"
        )

        pending, user_id, plan = self._mpesa_payer(stk_callback)
        if not user_id:
            logger.warning(f"M-Pesa payment {checkout_request_id} does not match any subscription")
            return

        metadata = {
            "phoneNumber": items.get("PhoneNumber"),
            "transactionDate": items.get("TransactionDate"),
            "merchantRequestId": merchant_request_id,
            "checkoutRequestId": checkout_request_id,
        }
        amount = Decimal(str(items.get("Amount") or 0))

        if pending:
            self.payment_repo.update_status(
                pending.id,
                "completed",
                amount=amount,
                payment_reference=items.get("MpesaReceiptNumber"),
                metadata=metadata,
            )
        else:
            self.payment_repo.create(PaymentTransaction(
                user_id=user_id,
                amount=amount,
                currency="KES",
                payment_method="mpesa",
                payment_reference=items.get("MpesaReceiptNumber"),
                transaction_id=checkout_request_id,
                subscription_plan=plan,
                status="completed",
                metadata=metadata,
            ))

        self.profile_repo.activate_subscription(user_id, plan, one_month_from())
        logger.info(f"Subscription updated successfully for user: {user_id}")

    def _settle_mpesa_failure(self, stk_callback: Dict[str, Any]) -> None:
        checkout_request_id = stk_callback.get("CheckoutRequestID")
        logger.info(
            f"M-Pesa payment failed or cancelled: checkout={checkout_request_id} "
            f"code={stk_callback.get('ResultCode')} desc={stk_callback.get('ResultDesc')}"
        )

        pending, user_id, plan = self._mpesa_payer(stk_callback)
        if not user_id:
            return

        metadata = {
            "resultCode": stk_callback.get("ResultCode"),
            "resultDesc": stk_callback.get("ResultDesc"),
            "merchantRequestId": stk_callback.get("MerchantRequestID"),
            "checkoutRequestId": checkout_request_id,
        }

        if pending:
            self.payment_repo.update_status(pending.id, "failed", amount=Decimal("0"), metadata=metadata)
        else:
            self.payment_repo.create(PaymentTransaction(
                user_id=user_id,
                amount=Decimal("0"),
                currency="KES",
                payment_method="mpesa",
                transaction_id=checkout_request_id,
                subscription_plan=plan,
                status="failed",
                metadata=metadata,
            ))

    # ========================================
    # Paystack
    # ========================================

    async def initiate_paystack_payment(
        self,
        user_id: str,
        amount: Any,
        description: Optional[str],
        reference: Optional[str],
        currency: str = "KES",
        customer_email: Optional[str] = None,
        customer_phone: Optional[str] = None,
        customer_name: Optional[str] = None,
        callback_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        profile = self._get_profile(user_id)
        connector = self._paystack_connector(profile)

        if not amount or not description or not reference:
            raise InvalidRequestError("Amount, description, and reference are required")

        email = customer_email or profile.email or DEFAULT_PAYSTACK_EMAIL

        try:
            data = await connector.initialize_transaction(
                email=email,
                amount_minor=to_minor_units(amount),
                reference=reference,
                callback_url=callback_url or settings.paystack_callback_url(),
                metadata={
                    "description": description,
                    "currency": currency,
                    "customer_name": customer_name,
                    "customer_phone": customer_phone,
                    "user_id": user_id,
                },
            )
        except ConnectorResponseError as e:
            raise InvalidRequestError(e.message, details=e.details)
        except ConnectorUnavailableError as e:
            raise VendorUnavailableError(e.message)

        return {
            "success": True,
            "reference": data.get("reference"),
            "access_code": data.get("access_code"),
            "redirect_url": data.get("authorization_url"),
            "message": "Payment initiated successfully. Redirect customer to the payment page.",
        }

    async def verify_paystack_payment(self, user_id: str, reference: Optional[str]) -> Dict[str, Any]:
        if not reference:
            raise InvalidRequestError("Transaction reference is required")

        profile = self._get_profile(user_id)
        connector = self._paystack_connector(profile)

        try:
            response = await connector.verify_transaction(reference)
        except ConnectorUnavailableError as e:
            raise VendorUnavailableError(e.message)

        data = response.get("data")
        if not response.get("status") or not data:
            return {
                "success": False,
                "status": "failed",
                "message": response.get("message") or "Transaction not found",
            }

        return {
            "success": True,
            "status": data.get("status"),
            "amount": float(from_minor_units(data.get("amount"))),
            "currency": data.get("currency"),
            "reference": data.get("reference"),
            "paid_at": data.get("paid_at"),
            "channel": data.get("channel"),
            "customer": data.get("customer"),
            "message": response.get("message"),
        }

    async def _verify_with_owner_key(self, profile: Optional[BusinessProfile], reference: str) -> Optional[Dict[str, Any]]:
        """Verify with the owner's key; None when the owner has no key"""
        if not profile or not profile.paystack_secret_key:
            logger.warning(f"No Paystack key to verify {reference}")
            return None

        response = await PaystackConnector(profile.paystack_secret_key).verify_transaction(reference)
        logger.info(f"Verification response: {response.get('status')} {(response.get('data') or {}).get('status')}")
        return response

    async def process_paystack_reference(self, reference: str, owner_id: Optional[str] = None) -> None:
        """
        Settle a Paystack payment by reference (SUB_... or INV-...)

        Invoice numbers are only unique per business, so an invoice payment
        is looked up under owner_id when the caller knows it.
        """
        parsed = parse_subscription_reference(reference)
        if parsed:
            await self._settle_paystack_subscription(reference, *parsed)
        elif is_invoice_reference(reference):
            await self._settle_paystack_invoice(reference, owner_id)
        else:
            logger.info(f"Paystack reference {reference} is not a subscription or invoice payment")

    async def _settle_paystack_subscription(self, reference: str, user_id: str, plan: str) -> None:
        profile = self.profile_repo.get_by_user_id(user_id)
        response = await self._verify_with_owner_key(profile, reference)
        if response is None:
            return

        data = response.get("data") or {}
        if response.get("status") and data.get("status") == "success":
            self.payment_repo.create(PaymentTransaction(
                user_id=user_id,
                amount=from_minor_units(data.get("amount")),
                currency=data.get("currency") or "KES",
                payment_method="paystack",
                payment_reference=reference,
                transaction_id=str(data["id"]) if data.get("id") is not None else None,
                subscription_plan=plan,
                status="completed",
                metadata={"reference": reference, "channel": data.get("channel"), "paid_at": data.get("paid_at")},
            ))
            self.profile_repo.activate_subscription(user_id, plan, one_month_from())
            logger.info(f"Subscription updated successfully for user: {user_id}")
        else:
            self.payment_repo.create(PaymentTransaction(
                user_id=user_id,
                amount=Decimal("0"),
                currency="KES",
                payment_method="paystack",
                payment_reference=reference,
                subscription_plan=plan,
                status="failed",
                metadata={"reference": reference, "verification_status": data.get("status") or "unknown"},
            ))

    async def _settle_paystack_invoice(self, reference: str, owner_id: Optional[str] = None) -> None:
        invoice = self.invoice_repo.find_by_number(reference, user_id=owner_id)
        if not invoice:
            logger.warning(f"Paystack callback for unknown invoice {reference}")
            return

        profile = self.profile_repo.get_by_user_id(invoice.user_id)
        response = await self._verify_with_owner_key(profile, reference)
        if response is None:
            return

        data = response.get("data") or {}
        paid_for = paystack_owner_id(response)
        if paid_for and paid_for != invoice.user_id:
            logger.warning(f"Paystack payment {reference} belongs to user {paid_for}, not invoice owner {invoice.user_id}")
            return

        if response.get("status") and data.get("status") == "success":
            self.invoice_repo.mark_paid_by_number(invoice.user_id, reference)
            logger.info(f"Invoice marked as paid: {reference}")

    def _paystack_secret_for_reference(self, reference: str, owner_id: Optional[str] = None) -> Optional[str]:
        parsed = parse_subscription_reference(reference)
        user_id = parsed[0] if parsed else None
        if not user_id and is_invoice_reference(reference):
            invoice = self.invoice_repo.find_by_number(reference, user_id=owner_id)
            user_id = invoice.user_id if invoice else None

        if not user_id:
            return None
        profile = self.profile_repo.get_by_user_id(user_id)
        return profile.paystack_secret_key if profile else None

    async def handle_paystack_webhook(self, body: bytes, signature: Optional[str]) -> Optional[str]:
        """
        Paystack webhook (POST). The signature is checked with the payment
        owner's secret key when the header is present.

        Returns:
            The settled reference, None for ignored events

        Raises:
            WebhookSignatureError: signature present but invalid
        """
        try:
            event = json.loads(body or b"{}")
        except ValueError:
            raise InvalidRequestError("Invalid webhook payload")

        logger.info(f"Paystack webhook received: {event.get('event')}")

        reference = paystack_reference_from_event(event)
        if not reference:
            return None
        owner_id = paystack_owner_id(event)

        if signature:
            secret = self._paystack_secret_for_reference(reference, owner_id)
            if secret:
                PaystackConnector(secret).verify_webhook_signature(body, signature)
        else:
            logger.warning(f"Unsigned Paystack webhook for {reference}")

        await self.process_paystack_reference(reference, owner_id)
        return reference

    # ========================================
    # Stripe
    # ========================================

    def handle_stripe_event(self, event: Dict[str, Any]) -> None:
        """Record card payments from checkout, failed intents and renewals"""
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}
        logger.info(f"Stripe webhook received: {event_type}")

        if event_type == "checkout.session.completed":
            metadata = obj.get("metadata") or {}
            user_id = metadata.get("user_id")
            plan = metadata.get("plan") or DEFAULT_PAID_PLAN
            if not user_id:
                return

            self.payment_repo.create(PaymentTransaction(
                user_id=user_id,
                amount=from_minor_units(obj.get("amount_total")),
                currency=(obj.get("currency") or "usd").upper(),
                payment_method="card",
                payment_reference=obj.get("payment_intent"),
                transaction_id=obj.get("id"),
                subscription_plan=plan,
                status="completed",
                metadata={
                    "sessionId": obj.get("id"),
                    "paymentIntent": obj.get("payment_intent"),
                    "customerEmail": obj.get("customer_email"),
                },
            ))
            self.profile_repo.activate_subscription(user_id, plan, one_month_from())

        elif event_type == "payment_intent.payment_failed":
            metadata = obj.get("metadata") or {}
            user_id = metadata.get("user_id")
            if not user_id:
                return

            self.payment_repo.create(PaymentTransaction(
                user_id=user_id,
                amount=from_minor_units(obj.get("amount")),
                currency=(obj.get("currency") or "usd").upper(),
                payment_method="card",
                payment_reference=obj.get("id"),
                transaction_id=obj.get("id"),
                subscription_plan=metadata.get("plan") or DEFAULT_PAID_PLAN,
                status="failed",
                metadata={
                    "paymentIntentId": obj.get("id"),
                    "failureMessage": (obj.get("last_payment_error") or {}).get("message"),
                },
            ))

        elif event_type == "invoice.payment_succeeded":
            metadata = (obj.get("subscription_details") or {}).get("metadata") or {}
            user_id = metadata.get("user_id")
            if not user_id:
                return

            self.payment_repo.create(PaymentTransaction(
                user_id=user_id,
                amount=from_minor_units(obj.get("amount_paid")),
                currency=(obj.get("currency") or "usd").upper(),
                payment_method="card",
                payment_reference=obj.get("payment_intent"),
                transaction_id=obj.get("id"),
                subscription_plan=metadata.get("plan") or DEFAULT_PAID_PLAN,
                status="completed",
                metadata={"invoiceId": obj.get("id"), "subscriptionId": obj.get("subscription")},
            ))
            self.profile_repo.extend_subscription(user_id, one_month_from())

    # ========================================
    # History
    # ========================================

    def list_billing_history(self, user_id: str) -> List[Dict[str, Any]]:
        return [payment.to_dict() for payment in self.payment_repo.list_for_user(user_id)]

    def list_payment_transactions(
        self,
        status: Optional[str] = None,
        payment_method: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        return [
            payment.to_dict()
            for payment in self.payment_repo.list_all(status=status, payment_method=payment_method)
        ]
