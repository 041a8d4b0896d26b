"""
API tests through FastAPI's TestClient

Services are replaced with MagicMocks via dependency_overrides; no route
reaches the database.
"""
import time
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from app.api import payments, pos, public, transactions
from app.core.auth import AuthUser, get_current_user
from app.core.config import settings
from app.core.errors import InvalidRequestError
from app.domain.pos import PosReceipt, ReceiptLine
from app.domain.transaction import Transaction
from app.main import app
from app.services.payment_service import MPESA_ACK, MPESA_INVALID

USER_ID = "11111111-1111-1111-1111-111111111111"


def make_token(sub=USER_ID, expires_in=3600, **claims):
    payload = {"sub": sub, "aud": "authenticated", "exp": int(time.time()) + expires_in, **claims}
    return jwt.encode(payload, settings.SUPABASE_JWT_SECRET, algorithm="HS256")


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def signed_in():
    app.dependency_overrides[get_current_user] = lambda: AuthUser(id=USER_ID, email="njeri@duka.co.ke")


def override_service(dependency, service):
    app.dependency_overrides[dependency] = lambda: service
    return service


class TestHealth:
    """Test status endpoints"""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "online"

    def test_health_connected(self, client):
        with patch("app.main.ping_database", return_value=4.2):
            body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["database"] == {"status": "connected", "latency_ms": 4.2, "error": None}

    def test_health_degraded(self, client):
        with patch("app.main.ping_database", side_effect=RuntimeError("could not connect")):
            body = client.get("/health").json()

        assert body["status"] == "degraded"
        assert body["database"]["error"] == "could not connect"


class TestAuthentication:
    """Test bearer token handling"""

    def test_missing_token(self, client):
        response = client.get("/api/v1/transactions/")

        assert response.status_code == 401
        assert response.json()["detail"] == "Missing authorization header"

    def test_expired_token(self, client):
        response = client.get(
            "/api/v1/transactions/",
            headers={"Authorization": f"Bearer {make_token(expires_in=-60)}"},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Token has expired"

    def test_wrong_secret(self, client):
        token = jwt.encode(
            {"sub": USER_ID, "aud": "authenticated", "exp": int(time.time()) + 60},
            "some-other-secret",
            algorithm="HS256",
        )

        response = client.get("/api/v1/transactions/", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid JWT"

    def test_valid_token_reaches_route(self, client, sample_transaction_data):
        service = override_service(transactions.get_transaction_service, MagicMock())
        service.list_transactions.return_value = [Transaction(**sample_transaction_data)]

        response = client.get(
            "/api/v1/transactions/?type=sale",
            headers={"Authorization": f"Bearer {make_token()}"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["data"][0]["id"] == "tx-1"
        assert service.list_transactions.call_args[0][0] == USER_ID
        assert service.list_transactions.call_args[1]["type"] == "sale"

    def test_admin_route_requires_role(self, client, signed_in):
        with patch("app.repositories.profile_repository.ProfileRepository.has_role", return_value=False):
            response = client.get("/api/v1/admin/plans")

        assert response.status_code == 403
        assert response.json()["detail"] == "Admin access required"


class TestPosCheckout:
    """Test POST /api/v1/pos/checkout"""

    def test_checkout_returns_receipt(self, client, signed_in):
        service = override_service(pos.get_pos_service, MagicMock())
        service.checkout.return_value = PosReceipt(
            transaction_id="tx-9",
            items=[ReceiptLine(
                product_id="prod-1", description="Unga Pembe 2kg", quantity=2,
                unit_price=Decimal("250"), total=Decimal("500"),
            )],
            subtotal=Decimal("500"),
            vat_amount=Decimal("80"),
            total=Decimal("580"),
            payment_method="cash",
        )

        response = client.post("/api/v1/pos/checkout", json={
            "items": [{"product_id": "prod-1", "quantity": 2}],
            "payment_method": "cash",
        })

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["transaction_id"] == "tx-9"
        assert float(data["total"]) == 580.0
        request = service.checkout.call_args[0][1]
        assert request.items[0].quantity == 2

    def test_empty_cart_rejected(self, client, signed_in):
        override_service(pos.get_pos_service, MagicMock())

        response = client.post("/api/v1/pos/checkout", json={"items": []})

        assert response.status_code == 422

    def test_business_error_shape(self, client, signed_in):
        service = override_service(pos.get_pos_service, MagicMock())
        service.checkout.side_effect = InvalidRequestError(
            "Insufficient stock for Unga Pembe 2kg", details={"available": 1}
        )

        response = client.post("/api/v1/pos/checkout", json={"items": [{"product_id": "prod-1", "quantity": 5}]})

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Insufficient stock for Unga Pembe 2kg",
            "details": {"available": 1},
        }

    def test_unexpected_error_hides_internals(self, signed_in):
        service = override_service(pos.get_pos_service, MagicMock())
        service.checkout.side_effect = RuntimeError("connection to server at db.internal:5432 failed")

        with TestClient(app, raise_server_exceptions=False) as quiet_client:
            response = quiet_client.post("/api/v1/pos/checkout", json={"items": [{"product_id": "prod-1", "quantity": 1}]})
        app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Internal server error"}
        assert "db.internal" not in response.text


class TestPaymentCallbacks:
    """Test the unauthenticated vendor callbacks"""

    def test_mpesa_callback_not_json(self, client):
        override_service(payments.get_payment_service, MagicMock())

        response = client.post(
            "/api/v1/payments/mpesa/callback",
            content=b"<xml/>",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json() == MPESA_INVALID

    def test_mpesa_callback_acknowledged(self, client):
        service = override_service(payments.get_payment_service, MagicMock())
        service.handle_mpesa_callback.return_value = MPESA_ACK
        body = {"Body": {"stkCallback": {"ResultCode": 1032, "CheckoutRequestID": "ws_CO_1"}}}

        response = client.post("/api/v1/payments/mpesa/callback", json=body)

        assert response.json() == MPESA_ACK
        service.handle_mpesa_callback.assert_called_once_with(body)

    def test_paystack_redirect(self, client):
        service = override_service(payments.get_payment_service, MagicMock())
        service.process_paystack_reference = AsyncMock()

        response = client.get("/api/v1/payments/paystack/callback?trxref=INV-007", follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"].endswith("/payment-success?reference=INV-007")
        service.process_paystack_reference.assert_awaited_once_with("INV-007")

    def test_paystack_redirect_without_reference(self, client):
        override_service(payments.get_payment_service, MagicMock())

        response = client.get("/api/v1/payments/paystack/callback", follow_redirects=False)

        assert response.status_code == 400
        assert response.json()["error"] == "Missing transaction reference"

    def test_stripe_webhook_unverified_without_secret(self, client):
        service = override_service(payments.get_payment_service, MagicMock())

        with patch.object(settings, "STRIPE_WEBHOOK_SECRET", ""):
            response = client.post(
                "/api/v1/payments/stripe/webhook",
                json={"type": "checkout.session.completed", "data": {"object": {}}},
            )

        assert response.json() == {"received": True}
        assert service.handle_stripe_event.call_args[0][0]["type"] == "checkout.session.completed"

    def test_stripe_webhook_bad_signature(self, client):
        service = override_service(payments.get_payment_service, MagicMock())

        with patch.object(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test"):
            response = client.post(
                "/api/v1/payments/stripe/webhook",
                content=b'{"type": "checkout.session.completed"}',
                headers={"Stripe-Signature": f"t={int(time.time())},v1=deadbeef"},
            )

        assert response.status_code == 400
        service.handle_stripe_event.assert_not_called()


class TestPublicSite:
    """Test the unauthenticated marketing endpoints"""

    def test_page_content(self, client):
        service = override_service(public.get_admin_settings_service, MagicMock())
        service.page_content_map.return_value = {"hero_title": "Tax made simple"}

        response = client.get("/api/v1/public/page-content/home")

        assert response.json() == {"status": "success", "data": {"hero_title": "Tax made simple"}}
        service.page_content_map.assert_called_once_with("home")
