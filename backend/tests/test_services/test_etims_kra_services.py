"""
Unit tests for EtimsService and KraService
"""
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from app.connectors.errors import ConnectorAuthError, ConnectorUnavailableError
from app.connectors.etims_connector import EtimsConnector
from app.core.errors import (
    CredentialsNotConfiguredError,
    InvalidRequestError,
    ResourceNotFoundError,
    VendorAuthError,
)
from app.domain.etims import EtimsSubmission
from app.domain.invoice import Invoice
from app.domain.profile import BusinessProfile
from app.services.etims_service import CONNECTION_ERROR_MESSAGE, EtimsService
from app.services.kra_service import KraService


@pytest.fixture
def kra_profile(sample_profile_data):
    return BusinessProfile(**{**sample_profile_data, "kra_api_key": "key", "kra_api_secret": "secret"})


@pytest.fixture
def connector():
    connector = MagicMock()
    connector.get_access_token = AsyncMock(return_value="tok")
    return connector


@pytest.fixture
def etims(kra_profile, connector, sample_invoice_data):
    service = EtimsService()
    service.profile_repo = MagicMock()
    service.invoice_repo = MagicMock()
    service.etims_repo = MagicMock()
    service.profile_repo.get_by_user_id.return_value = kra_profile
    service.invoice_repo.find_by_id.return_value = Invoice(**sample_invoice_data)
    service.etims_repo.find_active_for_invoice.return_value = None
    service.etims_repo.create_pending.return_value = MagicMock(id="sub-1")
    service._connector = MagicMock(return_value=connector)
    return service


class TestEtimsSubmit:
    """Test EtimsService.submit_invoice"""

    async def test_success_updates_submission_and_invoice(self, etims, connector, user_id):
        connector.submit_invoice = AsyncMock(return_value=(True, {"controlUnitNumber": "CU1", "qrCodeUrl": "https://qr/1"}))

        result = await etims.submit_invoice(user_id, "inv-1")

        assert result["success"] is True
        assert result["control_unit_number"] == "CU1"
        payload = etims.etims_repo.create_pending.call_args[0][2]
        assert payload["traderSystemInvoiceNumber"] == "INV-007"
        etims.etims_repo.mark_submitted.assert_called_once_with("sub-1", {"controlUnitNumber": "CU1", "qrCodeUrl": "https://qr/1"})
        etims.invoice_repo.update_etims_fields.assert_called_once_with(
            "inv-1", "submitted", control_number="CU1", qr_code="https://qr/1"
        )

    async def test_rejection_marks_failed(self, etims, connector, user_id):
        connector.submit_invoice = AsyncMock(return_value=(False, {"message": "Invalid buyer PIN"}))

        result = await etims.submit_invoice(user_id, "inv-1")

        assert result == {"success": False, "submission_id": "sub-1", "error": "Invalid buyer PIN", "can_retry": True}
        etims.invoice_repo.update_etims_fields.assert_called_once_with("inv-1", "failed")

    async def test_connection_error_keeps_retry_open(self, etims, connector, user_id):
        connector.submit_invoice = AsyncMock(side_effect=ConnectorUnavailableError("down"))

        result = await etims.submit_invoice(user_id, "inv-1")

        assert result["error"] == CONNECTION_ERROR_MESSAGE
        assert result["can_retry"] is True
        etims.etims_repo.mark_failed.assert_called_once_with("sub-1", CONNECTION_ERROR_MESSAGE)

    async def test_gateway_error_page_marks_submission_failed(self, etims, user_id):
        real_async_client = httpx.AsyncClient

        def handler(request):
            if request.url.path.endswith("/oauth/token"):
                return httpx.Response(200, json={"access_token": "tok"})
            return httpx.Response(502, text="<html>Bad Gateway</html>")

        etims._connector = MagicMock(return_value=EtimsConnector("key", "secret", base_url="https://etims.test/v1"))
        with patch("httpx.AsyncClient", lambda *args, **kwargs: real_async_client(transport=httpx.MockTransport(handler))):
            result = await etims.submit_invoice(user_id, "inv-1")

        assert result["success"] is False
        assert result["error"] == CONNECTION_ERROR_MESSAGE
        etims.etims_repo.mark_failed.assert_called_once_with("sub-1", CONNECTION_ERROR_MESSAGE)
        etims.etims_repo.mark_submitted.assert_not_called()

    async def test_already_submitted(self, etims, user_id):
        etims.etims_repo.find_active_for_invoice.return_value = EtimsSubmission(
            id="sub-0", user_id=user_id, invoice_id="inv-1", status="verified"
        )

        with pytest.raises(InvalidRequestError) as exc_info:
            await etims.submit_invoice(user_id, "inv-1")

        assert exc_info.value.details == {"submission_id": "sub-0", "status": "verified"}
        etims.etims_repo.create_pending.assert_not_called()

    async def test_unknown_invoice(self, etims, user_id):
        etims.invoice_repo.find_by_id.return_value = None

        with pytest.raises(ResourceNotFoundError):
            await etims.submit_invoice(user_id, "inv-404")

    async def test_missing_credentials(self, etims, user_id, sample_profile_data):
        etims.profile_repo.get_by_user_id.return_value = BusinessProfile(**sample_profile_data)

        with pytest.raises(CredentialsNotConfiguredError):
            await etims.submit_invoice(user_id, "inv-1")

    async def test_rejected_token(self, etims, connector, user_id):
        connector.get_access_token = AsyncMock(side_effect=ConnectorAuthError("nope"))

        with pytest.raises(VendorAuthError):
            await etims.submit_invoice(user_id, "inv-1")


class TestEtimsOtherActions:
    """Test verification, cancellation and dispatch"""

    async def test_verify(self, etims, connector, user_id):
        etims.etims_repo.find_by_id.return_value = EtimsSubmission(
            id="sub-1", user_id=user_id, invoice_id="inv-1", status="submitted", control_unit_number="CU1"
        )
        connector.verify_invoice = AsyncMock(return_value=(True, {"verified": True}))

        result = await etims.run_action(user_id, "verify_submission", submission_id="sub-1")

        assert result["verified"] is True
        etims.invoice_repo.update_etims_fields.assert_called_once_with("inv-1", "verified")

    async def test_cancel_failure_leaves_state(self, etims, connector, user_id):
        etims.etims_repo.find_by_id.return_value = EtimsSubmission(id="sub-1", user_id=user_id, invoice_id="inv-1")
        connector.cancel_invoice = AsyncMock(return_value=(False, {"message": "Already reported"}))

        result = await etims.run_action(user_id, "cancel_invoice", submission_id="sub-1")

        assert result == {"success": False, "error": "Already reported"}
        etims.etims_repo.mark_cancelled.assert_not_called()

    async def test_get_status_needs_an_id(self, etims, user_id):
        with pytest.raises(InvalidRequestError):
            await etims.run_action(user_id, "get_status")

    async def test_unknown_action(self, etims, user_id):
        with pytest.raises(InvalidRequestError):
            await etims.run_action(user_id, "delete_everything")


class TestKraService:
    """Test KraService PIN handling and dispatch"""

    @pytest.fixture
    def kra(self, kra_profile, connector):
        service = KraService()
        service.profile_repo = MagicMock()
        service.profile_repo.get_by_user_id.return_value = kra_profile
        service._connector = MagicMock(return_value=connector)
        return service

    async def test_verify_pin_defaults_to_profile_pin(self, kra, connector, user_id):
        connector.verify_pin = AsyncMock(return_value={"valid": True})

        result = await kra.run_action(user_id, "verify_pin")

        assert result == {"success": True, "data": {"valid": True}}
        connector.verify_pin.assert_awaited_once_with("tok", "P051234567X")

    async def test_pin_uppercased(self, kra, connector, user_id):
        connector.check_tcc = AsyncMock(return_value={"status": "valid"})

        await kra.run_action(user_id, "check_tcc", pin=" a012345678b ")

        connector.check_tcc.assert_awaited_once_with("tok", "A012345678B")

    async def test_short_pin_rejected(self, kra, user_id):
        with pytest.raises(InvalidRequestError):
            await kra.run_action(user_id, "verify_pin", pin="A123")

    async def test_nil_filing_needs_period(self, kra, user_id):
        with pytest.raises(InvalidRequestError):
            await kra.run_action(user_id, "nil_filing", obligation_type="VAT")

    async def test_unknown_action(self, kra, user_id):
        with pytest.raises(InvalidRequestError):
            await kra.run_action(user_id, "pay_taxes")
