"""
Paystack API Connector
Card and mobile money checkout through Paystack's hosted payment page
"""
import hashlib
import hmac
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from app.connectors.errors import (
    ConnectorResponseError,
    ConnectorUnavailableError,
    WebhookSignatureError,
    decode_json_body,
)
from app.core.config import settings

logger = logging.getLogger(__name__)


class PaystackConnector:
    """
    Connector for the Paystack transactions API

    Amounts are exchanged in the currency's smallest unit (cents for KES).
    """

    def __init__(self, secret_key: str, base_url: Optional[str] = None, timeout: Optional[float] = None):
        if not secret_key:
            raise ValueError("Paystack secret key not configured")

        self.secret_key = secret_key
        self.base_url = (base_url or settings.PAYSTACK_API_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    async def initialize_transaction(
        self,
        email: str,
        amount_minor: int,
        reference: str,
        callback_url: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Create a checkout session

        Returns:
            ``data`` of the Paystack response: authorization_url, access_code, reference

        Raises:
            ConnectorResponseError: Paystack answered with status false
        """
        logger.info(f"Initializing Paystack transaction: {reference}")

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    f"{self.base_url}/transaction/initialize",
                    headers=self._headers,
                    json={
                        "email": email,
                        "amount": amount_minor,
                        "reference": reference,
                        "callback_url": callback_url,
                        "metadata": metadata or {},
                    },
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                logger.error(f"Paystack initialize error: {e}")
                raise ConnectorUnavailableError("Could not reach Paystack") from e

        data = decode_json_body(response, "Paystack")
        logger.info(f"Initialize response: {data.get('status')} {data.get('message')}")

        if not data.get("status"):
            raise ConnectorResponseError(data.get("message") or "Failed to initialize transaction", details=data)

        return data.get("data") or {}

    async def verify_transaction(self, reference: str) -> Dict[str, Any]:
        """
        Look up a transaction by reference

        Returns:
            Raw Paystack response ({"status": bool, "message": str, "data": {...}})
        """
        logger.info(f"Verifying Paystack transaction: {reference}")

        async with httpx.AsyncClient() as client:
            try:
                response = await client.get(
                    f"{self.base_url}/transaction/verify/{quote(reference, safe='')}",
                    headers=self._headers,
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                logger.error(f"Paystack verify error: {e}")
                raise ConnectorUnavailableError("Could not reach Paystack") from e

        data = decode_json_body(response, "Paystack")
        logger.info(f"Verify response: {data.get('status')} {data.get('message')}")
        return data

    def verify_webhook_signature(self, body: bytes, signature: Optional[str]) -> None:
        """
        Check the x-paystack-signature header (HMAC-SHA512 of the raw body)

        Raises:
            WebhookSignatureError: header missing or not matching
        """
        if not signature:
            raise WebhookSignatureError("Missing Paystack signature")

        expected = hmac.new(self.secret_key.encode(), body, hashlib.sha512).hexdigest()
        if not hmac.compare_digest(expected, signature):
            raise WebhookSignatureError("Invalid Paystack signature")
