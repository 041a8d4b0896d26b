"""
M-Pesa Daraja API Connector
Handles STK Push (Lipa na M-Pesa Online) initiation and status queries

Each business brings its own Daraja app: consumer key/secret, paybill
shortcode and passkey are read from the profile and passed in.
"""
import base64
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from app.connectors.errors import ConnectorAuthError, ConnectorUnavailableError, decode_json_body
from app.core.config import settings

logger = logging.getLogger(__name__)

TRANSACTION_TYPE = "CustomerPayBillOnline"
DEFAULT_REFERENCE = "Payment"


def format_phone_number(phone: str) -> str:
    """
    Normalise a Kenyan phone number to 2547XXXXXXXX

    0712345678 -> 254712345678
    +254712345678 -> 254712345678
    712345678 -> 254712345678
    """
    cleaned = re.sub(r"[^0-9]", "", phone or "")
    if cleaned.startswith("0"):
        return "254" + cleaned[1:]
    if cleaned.startswith("254"):
        return cleaned
    return "254" + cleaned


def build_password(shortcode: str, passkey: str, timestamp: str) -> str:
    """Daraja password: base64(shortcode + passkey + timestamp)"""
    return base64.b64encode(f"{shortcode}{passkey}{timestamp}".encode()).decode()


def timestamp(now: Optional[datetime] = None) -> str:
    """YYYYMMDDHHMMSS in UTC"""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y%m%d%H%M%S")


class MpesaConnector:
    """
    Connector for the Safaricom Daraja API

    Handles:
    - OAuth client-credentials token
    - STK Push initiation
    - STK Push status query
    """

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        shortcode: str,
        passkey: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        if not all([consumer_key, consumer_secret, shortcode, passkey]):
            raise ValueError("M-Pesa credentials not configured")

        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.shortcode = shortcode
        self.passkey = passkey
        self.base_url = (base_url or settings.MPESA_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    async def get_access_token(self) -> str:
        """
        Exchange consumer key/secret for a bearer token

        Raises:
            ConnectorAuthError: Daraja rejected the credentials
            ConnectorUnavailableError: Daraja could not be reached
        """
        url = f"{self.base_url}/oauth/v1/generate"
        auth = base64.b64encode(f"{self.consumer_key}:{self.consumer_secret}".encode()).decode()

        async with httpx.AsyncClient() as client:
            try:
                response = await client.get(
                    url,
                    params={"grant_type": "client_credentials"},
                    headers={"Authorization": f"Basic {auth}"},
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                logger.error(f"Daraja token request error: {e}")
                raise ConnectorUnavailableError("Could not reach M-Pesa API") from e

        if response.status_code != 200:
            logger.error(f"Failed to get M-Pesa access token: {response.status_code} - {response.text}")
            raise ConnectorAuthError("Failed to get M-Pesa access token")

        logger.info("M-Pesa access token obtained")
        token = decode_json_body(response, "M-Pesa").get("access_token")
        if not token:
            raise ConnectorAuthError("Failed to get M-Pesa access token")
        return token

    async def _post(self, path: str, access_token: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    f"{self.base_url}{path}",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Content-Type": "application/json",
                    },
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                logger.error(f"Daraja request to {path} failed: {e}")
                raise ConnectorUnavailableError("Could not reach M-Pesa API") from e

        # Daraja reports business errors in the JSON body with 4xx codes
        return decode_json_body(response, "M-Pesa")

    async def stk_push(
        self,
        access_token: str,
        phone_number: str,
        amount: float,
        account_reference: Optional[str] = None,
        description: Optional[str] = None,
        callback_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send the payment prompt to the customer's handset

        The amount is rounded up to a whole shilling.

        Returns:
            Raw Daraja response (ResponseCode "0" on acceptance)
        """
        ts = timestamp()
        phone = format_phone_number(phone_number)

        payload = {
            "BusinessShortCode": self.shortcode,
            "Password": build_password(self.shortcode, self.passkey, ts),
            "Timestamp": ts,
            "TransactionType": TRANSACTION_TYPE,
            "Amount": math.ceil(amount),
            "PartyA": phone,
            "PartyB": self.shortcode,
            "PhoneNumber": phone,
            "CallBackURL": callback_url or settings.mpesa_callback_url(),
            "AccountReference": account_reference or DEFAULT_REFERENCE,
            "TransactionDesc": description or DEFAULT_REFERENCE,
        }

        logger.info(f"Initiating STK Push: {dict(payload, Password='[REDACTED]')}")

        data = await self._post("/mpesa/stkpush/v1/processrequest", access_token, payload)
        logger.info(f"STK Push response: {data}")
        return data

    async def stk_query(self, access_token: str, checkout_request_id: str) -> Dict[str, Any]:
        """Ask Daraja for the outcome of an STK Push"""
        ts = timestamp()
        payload = {
            "BusinessShortCode": self.shortcode,
            "Password": build_password(self.shortcode, self.passkey, ts),
            "Timestamp": ts,
            "CheckoutRequestID": checkout_request_id,
        }

        data = await self._post("/mpesa/stkpushquery/v1/query", access_token, payload)
        logger.info(f"STK Query response: {data}")
        return data
