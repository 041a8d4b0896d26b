"""
Unit tests for PaymentService

Covers STK Push initiation, the Daraja result callback, Paystack webhook
settlement and Stripe events. Connectors are patched in the service module.
"""
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.connectors.errors import WebhookSignatureError
from app.core.errors import CredentialsNotConfiguredError
from app.domain.invoice import Invoice
from app.domain.payment import PaymentTransaction
from app.domain.profile import BusinessProfile
from app.services.payment_service import (
    MPESA_ACK,
    MPESA_INVALID,
    PaymentService,
    from_minor_units,
    payment_success_url,
    paystack_owner_id,
    to_minor_units,
)


@pytest.fixture
def profile(sample_profile_data):
    return BusinessProfile(**sample_profile_data)


@pytest.fixture
def service(profile):
    service = PaymentService()
    service.profile_repo = MagicMock()
    service.payment_repo = MagicMock()
    service.invoice_repo = MagicMock()
    service.profile_repo.get_by_user_id.return_value = profile
    return service


def _stk_callback(result_code=0, merchant_request_id="29115-34620561-1", items=None):
    callback = {
        "MerchantRequestID": merchant_request_id,
        "CheckoutRequestID": "ws_CO_191220191020363925",
        "ResultCode": result_code,
        "ResultDesc": "The service request is processed successfully." if result_code == 0 else "Request cancelled by user",
    }
    if items is not None:
        callback["CallbackMetadata"] = {"Item": items}
    return {"Body": {"stkCallback": callback}}


SUCCESS_ITEMS = [
    {"Name": "Amount", "Value": 1500},
    {"Name": "MpesaReceiptNumber", "Value": "NLJ7RT61SV"},
    {"Name": "TransactionDate", "Value": 20191219102115},
    {"Name": "PhoneNumber", "Value": 254708374149},
]


def test_minor_units():
    assert to_minor_units(150.5) == 15050
    assert to_minor_units("99.995") == 10000
    assert from_minor_units(250000) == Decimal("2500")
    assert from_minor_units(None) == Decimal("0")


def test_payment_success_url_escapes_reference():
    assert payment_success_url("SUB_u1_pro 1").endswith("/payment-success?reference=SUB_u1_pro%201")


class TestStkPush:
    """Test STK Push initiation and status polling"""

    async def test_subscription_push_records_pending_row(self, service, user_id):
        with patch("app.services.payment_service.MpesaConnector") as connector_cls:
            connector = connector_cls.return_value
            connector.get_access_token = AsyncMock(return_value="tok")
            connector.stk_push = AsyncMock(return_value={
                "ResponseCode": "0",
                "CheckoutRequestID": "ws_CO_1",
                "MerchantRequestID": "m-1",
            })

            result = await service.initiate_stk_push(user_id, "0712345678", 2500, account_reference=f"SUB_{user_id}_pro")

        assert result["success"] is True
        assert result["checkout_request_id"] == "ws_CO_1"
        pending = service.payment_repo.create.call_args[0][0]
        assert pending.status == "pending"
        assert pending.transaction_id == "ws_CO_1"
        assert pending.subscription_plan == "pro"
        assert pending.amount == Decimal("2500")

    async def test_plain_push_records_nothing(self, service, user_id):
        with patch("app.services.payment_service.MpesaConnector") as connector_cls:
            connector = connector_cls.return_value
            connector.get_access_token = AsyncMock(return_value="tok")
            connector.stk_push = AsyncMock(return_value={"ResponseCode": "0", "CheckoutRequestID": "ws_CO_2"})

            await service.initiate_stk_push(user_id, "0712345678", 100, account_reference="INV-007")

        service.payment_repo.create.assert_not_called()

    async def test_rejected_push(self, service, user_id):
        with patch("app.services.payment_service.MpesaConnector") as connector_cls:
            connector = connector_cls.return_value
            connector.get_access_token = AsyncMock(return_value="tok")
            connector.stk_push = AsyncMock(return_value={"errorCode": "400.002.02", "errorMessage": "Invalid PhoneNumber"})

            result = await service.initiate_stk_push(user_id, "07", 100)

        assert result["success"] is False
        assert result["error"] == "Invalid PhoneNumber"

    async def test_missing_daraja_credentials(self, service, user_id, sample_profile_data):
        service.profile_repo.get_by_user_id.return_value = BusinessProfile(
            **{**sample_profile_data, "mpesa_passkey": None}
        )

        with pytest.raises(CredentialsNotConfiguredError):
            await service.initiate_stk_push(user_id, "0712345678", 100)

    @pytest.mark.parametrize("code,status", [("0", "success"), ("1032", "cancelled"), ("1037", "failed"), ("1", "pending"), ("2001", "failed")])
    async def test_query_status_mapping(self, service, user_id, code, status):
        reply = {"ResultCode": code, "ResultDesc": "desc"}
        with patch("app.services.payment_service.MpesaConnector") as connector_cls:
            connector = connector_cls.return_value
            connector.get_access_token = AsyncMock(return_value="tok")
            connector.stk_query = AsyncMock(return_value=reply)

            result = await service.query_stk_status(user_id, "ws_CO_1")

        assert result["status"] == status


class TestMpesaCallback:
    """Test PaymentService.handle_mpesa_callback"""

    def test_invalid_shape(self, service):
        assert service.handle_mpesa_callback({"foo": "bar"}) == MPESA_INVALID
        assert service.handle_mpesa_callback([]) == MPESA_INVALID

    def test_success_settles_pending_row(self, service, user_id):
        service.payment_repo.find_by_transaction_id.return_value = PaymentTransaction(
            id="pay-1", user_id=user_id, payment_method="mpesa", subscription_plan="pro"
        )

        result = service.handle_mpesa_callback(_stk_callback(0, items=SUCCESS_ITEMS))

        assert result == MPESA_ACK
        args, kwargs = service.payment_repo.update_status.call_args
        assert args == ("pay-1", "completed")
        assert kwargs["amount"] == Decimal("1500")
        assert kwargs["payment_reference"] == "NLJ7RT61SV"
        assert kwargs["metadata"]["phoneNumber"] == 254708374149
        activated = service.profile_repo.activate_subscription.call_args[0]
        assert activated[:2] == (user_id, "pro")
        assert activated[2] > datetime.now(timezone.utc)

    def test_failure_without_pending_row_uses_merchant_reference(self, service):
        service.payment_repo.find_by_transaction_id.return_value = None

        result = service.handle_mpesa_callback(_stk_callback(1032, merchant_request_id="SUB_u7_starter"))

        assert result == MPESA_ACK
        failed = service.payment_repo.create.call_args[0][0]
        assert failed.user_id == "u7"
        assert failed.status == "failed"
        assert failed.amount == Decimal("0")
        assert failed.metadata["resultCode"] == 1032
        service.profile_repo.activate_subscription.assert_not_called()

    def test_unknown_payer_is_acknowledged(self, service):
        service.payment_repo.find_by_transaction_id.return_value = None

        assert service.handle_mpesa_callback(_stk_callback(0, items=SUCCESS_ITEMS)) == MPESA_ACK
        service.payment_repo.create.assert_not_called()

    def test_bookkeeping_error_still_acknowledged(self, service):
        service.payment_repo.find_by_transaction_id.side_effect = RuntimeError("db down")

        assert service.handle_mpesa_callback(_stk_callback(0, items=SUCCESS_ITEMS)) == MPESA_ACK


class TestPaystackWebhook:
    """Test PaymentService.handle_paystack_webhook"""

    @pytest.fixture
    def invoice(self, sample_invoice_data):
        return Invoice(**sample_invoice_data)

    async def test_ignores_other_events(self, service):
        assert await service.handle_paystack_webhook(b'{"event": "transfer.success"}', None) is None

    async def test_unsigned_invoice_payment_marks_paid(self, service, invoice, user_id):
        service.invoice_repo.find_by_number.return_value = invoice
        body = b'{"event": "charge.success", "data": {"reference": "INV-007"}}'

        with patch("app.services.payment_service.PaystackConnector") as connector_cls:
            connector_cls.return_value.verify_transaction = AsyncMock(
                return_value={"status": True, "data": {"status": "success"}}
            )
            reference = await service.handle_paystack_webhook(body, None)

        assert reference == "INV-007"
        service.invoice_repo.find_by_number.assert_called_with("INV-007", user_id=None)
        connector_cls.assert_called_with("sk_test_abc123")
        service.invoice_repo.mark_paid_by_number.assert_called_once_with(user_id, "INV-007")

    async def test_invoice_looked_up_under_payment_owner(self, service, invoice, user_id):
        service.invoice_repo.find_by_number.return_value = invoice
        body = ('{"event": "charge.success", "data": {"reference": "INV-007", "metadata": {"user_id": "%s"}}}' % user_id).encode()

        with patch("app.services.payment_service.PaystackConnector") as connector_cls:
            connector_cls.return_value.verify_transaction = AsyncMock(return_value={
                "status": True,
                "data": {"status": "success", "metadata": {"user_id": user_id}},
            })
            await service.handle_paystack_webhook(body, None)

        service.invoice_repo.find_by_number.assert_called_once_with("INV-007", user_id=user_id)
        service.invoice_repo.mark_paid_by_number.assert_called_once_with(user_id, "INV-007")

    async def test_owner_without_that_invoice_settles_nothing(self, service):
        """Test another business's INV-007 is not touched when the payer's business has none"""
        service.invoice_repo.find_by_number.return_value = None
        body = b'{"event": "charge.success", "data": {"reference": "INV-007", "metadata": {"user_id": "other-shop"}}}'

        with patch("app.services.payment_service.PaystackConnector") as connector_cls:
            await service.handle_paystack_webhook(body, None)

        service.invoice_repo.find_by_number.assert_called_once_with("INV-007", user_id="other-shop")
        connector_cls.assert_not_called()
        service.invoice_repo.mark_paid_by_number.assert_not_called()

    async def test_verified_payment_for_another_business_not_applied(self, service, invoice):
        service.invoice_repo.find_by_number.return_value = invoice

        with patch("app.services.payment_service.PaystackConnector") as connector_cls:
            connector_cls.return_value.verify_transaction = AsyncMock(return_value={
                "status": True,
                "data": {"status": "success", "metadata": {"user_id": "other-shop"}},
            })
            await service.process_paystack_reference("INV-007")

        service.invoice_repo.mark_paid_by_number.assert_not_called()

    def test_paystack_owner_id(self):
        assert paystack_owner_id({"data": {"metadata": {"user_id": "u-1"}}}) == "u-1"
        assert paystack_owner_id({"data": {"metadata": "{}"}}) is None
        assert paystack_owner_id({"data": None}) is None

    async def test_bad_signature_rejected(self, service, invoice):
        service.invoice_repo.find_by_number.return_value = invoice
        body = b'{"event": "charge.success", "data": {"reference": "INV-007"}}'

        with patch("app.services.payment_service.PaystackConnector") as connector_cls:
            connector_cls.return_value.verify_webhook_signature.side_effect = WebhookSignatureError("Invalid Paystack signature")

            with pytest.raises(WebhookSignatureError):
                await service.handle_paystack_webhook(body, "deadbeef")

        service.invoice_repo.mark_paid_by_number.assert_not_called()

    async def test_subscription_payment_activates_plan(self, service, user_id):
        reference = f"SUB_{user_id}_business_1738000000"
        body = ('{"event": "charge.success", "data": {"reference": "%s"}}' % reference).encode()

        with patch("app.services.payment_service.PaystackConnector") as connector_cls:
            connector_cls.return_value.verify_transaction = AsyncMock(return_value={
                "status": True,
                "data": {"id": 4099, "status": "success", "amount": 250000, "currency": "KES", "channel": "mobile_money"},
            })
            await service.handle_paystack_webhook(body, None)

        payment = service.payment_repo.create.call_args[0][0]
        assert payment.status == "completed"
        assert payment.amount == Decimal("2500")
        assert payment.transaction_id == "4099"
        assert payment.subscription_plan == "business"
        assert service.profile_repo.activate_subscription.call_args[0][:2] == (user_id, "business")


class TestStripeEvents:
    """Test PaymentService.handle_stripe_event"""

    def test_checkout_completed(self, service, user_id):
        service.handle_stripe_event({
            "type": "checkout.session.completed",
            "data": {"object": {
                "id": "cs_1",
                "amount_total": 250000,
                "currency": "kes",
                "payment_intent": "pi_1",
                "metadata": {"user_id": user_id, "plan": "pro"},
            }},
        })

        payment = service.payment_repo.create.call_args[0][0]
        assert payment.payment_method == "card"
        assert payment.currency == "KES"
        assert payment.amount == Decimal("2500")
        assert service.profile_repo.activate_subscription.call_args[0][:2] == (user_id, "pro")

    def test_renewal_extends_subscription(self, service, user_id):
        service.handle_stripe_event({
            "type": "invoice.payment_succeeded",
            "data": {"object": {
                "id": "in_1",
                "amount_paid": 1500,
                "subscription_details": {"metadata": {"user_id": user_id}},
            }},
        })

        service.profile_repo.extend_subscription.assert_called_once()
        assert service.payment_repo.create.call_args[0][0].subscription_plan == "business"

    def test_event_without_user_ignored(self, service):
        service.handle_stripe_event({"type": "checkout.session.completed", "data": {"object": {"metadata": {}}}})

        service.payment_repo.create.assert_not_called()
