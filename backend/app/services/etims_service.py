"""
eTIMS Service
Submits invoices to KRA eTIMS and tracks each submission attempt

Handles:
- Duplicate protection (one active submission per invoice)
- Pending -> submitted / failed bookkeeping on etims_submissions
- Mirroring the eTIMS state onto the invoice row
- Verification and cancellation of submitted invoices
"""
import logging
from typing import Any, Dict, Optional

from app.connectors.errors import ConnectorAuthError, ConnectorUnavailableError
from app.connectors.etims_connector import EtimsConnector
from app.core.errors import (
    CredentialsNotConfiguredError,
    InvalidRequestError,
    ResourceNotFoundError,
    VendorAuthError,
    VendorUnavailableError,
)
from app.domain.etims import CANCELLATION_REASON, build_etims_payload
from app.domain.profile import BusinessProfile
from app.repositories import EtimsRepository, InvoiceRepository, ProfileRepository

logger = logging.getLogger(__name__)

CONNECTION_ERROR_MESSAGE = "Failed to connect to KRA eTIMS API"


class EtimsService:

    def __init__(self):
        self.profile_repo = ProfileRepository()
        self.invoice_repo = InvoiceRepository()
        self.etims_repo = EtimsRepository()

    # ========================================
    # Helpers
    # ========================================

    def _load_profile(self, user_id: str) -> BusinessProfile:
        profile = self.profile_repo.get_by_user_id(user_id)
        if not profile:
            raise ResourceNotFoundError("Profile", user_id)
        if not profile.has_kra_credentials:
            raise CredentialsNotConfiguredError(
                "KRA API credentials not configured",
                hint="Please add your KRA GavaConnect API key and secret in Settings",
            )
        return profile

    def _connector(self, profile: BusinessProfile) -> EtimsConnector:
        return EtimsConnector(profile.kra_api_key, profile.kra_api_secret)

    async def _authenticate(self, user_id: str):
        profile = self._load_profile(user_id)
        connector = self._connector(profile)

        try:
            token = await connector.get_access_token()
        except ConnectorAuthError:
            raise VendorAuthError(
                "Failed to authenticate with KRA eTIMS",
                details={"message": "Invalid API credentials or KRA service unavailable"},
            )
        except ConnectorUnavailableError:
            raise VendorUnavailableError(
                "KRA eTIMS service unavailable",
                details={"message": "Could not connect to KRA eTIMS API"},
            )

        return profile, connector, token

    # ========================================
    # Actions
    # ========================================

    async def submit_invoice(self, user_id: str, invoice_id: Optional[str]) -> Dict[str, Any]:
        if not invoice_id:
            raise InvalidRequestError("Invoice ID required")

        invoice = self.invoice_repo.find_by_id(user_id, invoice_id)
        if not invoice:
            raise ResourceNotFoundError("Invoice", invoice_id)

        existing = self.etims_repo.find_active_for_invoice(invoice_id)
        if existing:
            raise InvalidRequestError(
                "Invoice already submitted to eTIMS",
                details={"submission_id": existing.id, "status": existing.status},
            )

        profile, connector, token = await self._authenticate(user_id)

        payload = build_etims_payload(invoice, profile)
        submission = self.etims_repo.create_pending(user_id, invoice_id, payload)

        try:
            ok, body = await connector.submit_invoice(token, payload)
        except ConnectorUnavailableError:
            self.etims_repo.mark_failed(submission.id, CONNECTION_ERROR_MESSAGE)
            return {
                "success": False,
                "submission_id": submission.id,
                "error": CONNECTION_ERROR_MESSAGE,
                "can_retry": True,
            }

        if ok:
            self.etims_repo.mark_submitted(submission.id, body)
            self.invoice_repo.update_etims_fields(
                invoice_id,
                "submitted",
                control_number=body.get("controlUnitNumber"),
                qr_code=body.get("qrCodeUrl"),
            )
            logger.info(f"Invoice {invoice.invoice_number} submitted to eTIMS: {body.get('controlUnitNumber')}")
            return {
                "success": True,
                "submission_id": submission.id,
                "control_unit_number": body.get("controlUnitNumber"),
                "qr_code_url": body.get("qrCodeUrl"),
                "message": "Invoice successfully submitted to KRA eTIMS",
            }

        error_message = body.get("message") or "eTIMS submission failed"
        self.etims_repo.mark_failed(submission.id, error_message, response=body)
        self.invoice_repo.update_etims_fields(invoice_id, "failed")
        logger.warning(f"eTIMS rejected invoice {invoice.invoice_number}: {error_message}")

        return {
            "success": False,
            "submission_id": submission.id,
            "error": error_message,
            "can_retry": True,
        }

    def get_status(
        self,
        user_id: str,
        invoice_id: Optional[str] = None,
        submission_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not invoice_id and not submission_id:
            raise InvalidRequestError("Invoice ID or Submission ID required")

        submissions = self.etims_repo.list_for_user(user_id, invoice_id=invoice_id, submission_id=submission_id)
        return {"submissions": [submission.model_dump() for submission in submissions]}

    async def verify_submission(self, user_id: str, submission_id: Optional[str]) -> Dict[str, Any]:
        if not submission_id:
            raise InvalidRequestError("Submission ID required")

        submission = self.etims_repo.find_by_id(user_id, submission_id)
        if not submission:
            raise ResourceNotFoundError("Submission", submission_id)

        _, connector, token = await self._authenticate(user_id)

        try:
            ok, body = await connector.verify_invoice(
                token, submission.control_unit_number, submission.receipt_number
            )
        except ConnectorUnavailableError as e:
            raise VendorUnavailableError(e.message)

        if not ok:
            return {"success": False, "verified": False, "message": body.get("message") or "Verification pending"}

        self.etims_repo.mark_verified(submission_id, body)
        self.invoice_repo.update_etims_fields(submission.invoice_id, "verified")
        return {"success": True, "verified": True, "message": "Invoice verified with KRA"}

    async def cancel_submission(self, user_id: str, submission_id: Optional[str]) -> Dict[str, Any]:
        if not submission_id:
            raise InvalidRequestError("Submission ID required")

        submission = self.etims_repo.find_by_id(user_id, submission_id)
        if not submission:
            raise ResourceNotFoundError("Submission", submission_id)

        _, connector, token = await self._authenticate(user_id)

        try:
            ok, body = await connector.cancel_invoice(token, submission.control_unit_number, CANCELLATION_REASON)
        except ConnectorUnavailableError as e:
            raise VendorUnavailableError(e.message)

        if not ok:
            return {"success": False, "error": body.get("message") or "Cancellation failed"}

        self.etims_repo.mark_cancelled(submission_id, body)
        self.invoice_repo.update_etims_fields(submission.invoice_id, "cancelled")
        return {"success": True, "message": "Invoice cancelled with KRA"}

    async def run_action(
        self,
        user_id: str,
        action: str,
        invoice_id: Optional[str] = None,
        submission_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        logger.info(f"eTIMS action: {action} for user: {user_id}")

        if action == "submit_invoice":
            return await self.submit_invoice(user_id, invoice_id)
        if action == "get_status":
            return self.get_status(user_id, invoice_id, submission_id)
        if action == "verify_submission":
            return await self.verify_submission(user_id, submission_id)
        if action == "cancel_invoice":
            return await self.cancel_submission(user_id, submission_id)
        raise InvalidRequestError("Invalid action")
