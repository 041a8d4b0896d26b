"""
KRA eTIMS API Connector
Electronic tax invoice submission, verification and cancellation

Uses the same GavaConnect app credentials as the KRA connector.
Vendor calls return (ok, body): ok is the HTTP status plus the vendor's
own success flag, body is the parsed JSON reply. A non-JSON reply raises
ConnectorUnavailableError.
"""
import logging
from typing import Any, Dict, Optional, Tuple

from app.connectors.errors import decode_json_body
from app.connectors.kra_connector import KraConnector
from app.core.config import settings

logger = logging.getLogger(__name__)


class EtimsConnector(KraConnector):

    service_name = "KRA eTIMS"

    def _default_base_url(self) -> str:
        return settings.ETIMS_API_BASE_URL

    async def submit_invoice(self, access_token: str, payload: Dict[str, Any]) -> Tuple[bool, Dict[str, Any]]:
        response = await self._post_json("/invoice/submit", access_token, payload)
        body = decode_json_body(response, self.service_name)
        logger.info(f"eTIMS response: {body}")
        return response.is_success and bool(body.get("success")), body

    async def verify_invoice(
        self,
        access_token: str,
        control_unit_number: Optional[str],
        receipt_number: Optional[str],
    ) -> Tuple[bool, Dict[str, Any]]:
        response = await self._post_json("/invoice/verify", access_token, {
            "controlUnitNumber": control_unit_number,
            "receiptNumber": receipt_number,
        })
        body = decode_json_body(response, self.service_name)
        return response.is_success and bool(body.get("verified")), body

    async def cancel_invoice(
        self,
        access_token: str,
        control_unit_number: Optional[str],
        reason: str,
    ) -> Tuple[bool, Dict[str, Any]]:
        response = await self._post_json("/invoice/cancel", access_token, {
            "controlUnitNumber": control_unit_number,
            "cancellationReason": reason,
        })
        body = decode_json_body(response, self.service_name)
        return response.is_success and bool(body.get("cancelled")), body
