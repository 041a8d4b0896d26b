"""
KRA GavaConnect API Connector
PIN checker, Tax Compliance Certificate status, nil returns and obligations

Credentials are the business's own GavaConnect app key/secret.
"""
import base64
import logging
from typing import Any, Dict, Optional

import httpx

from app.connectors.errors import ConnectorAuthError, ConnectorUnavailableError, decode_json_body
from app.core.config import settings

logger = logging.getLogger(__name__)


class KraConnector:
    """
    Connector for KRA GavaConnect

    Every call needs a bearer token from get_access_token().
    """

    service_name = "KRA"

    def __init__(self, api_key: str, api_secret: str, base_url: Optional[str] = None, timeout: Optional[float] = None):
        if not api_key or not api_secret:
            raise ValueError(f"{self.service_name} API credentials not configured")

        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = (base_url or self._default_base_url()).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    def _default_base_url(self) -> str:
        return settings.KRA_API_BASE_URL

    async def get_access_token(self) -> str:
        """
        Client-credentials token exchange (form body, Basic auth)

        Raises:
            ConnectorAuthError: credentials rejected
            ConnectorUnavailableError: service could not be reached
        """
        auth = base64.b64encode(f"{self.api_key}:{self.api_secret}".encode()).decode()

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    f"{self.base_url}/oauth/token",
                    content="grant_type=client_credentials",
                    headers={
                        "Content-Type": "application/x-www-form-urlencoded",
                        "Authorization": f"Basic {auth}",
                    },
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                logger.error(f"{self.service_name} token fetch error: {e}")
                raise ConnectorUnavailableError(f"Could not connect to {self.service_name} API") from e

        if not response.is_success:
            logger.error(f"{self.service_name} OAuth error: {response.status_code} - {response.text}")
            raise ConnectorAuthError(f"Failed to authenticate with {self.service_name}")

        token = decode_json_body(response, self.service_name).get("access_token")
        if not token:
            logger.error(f"{self.service_name} OAuth reply has no access_token")
            raise ConnectorAuthError(f"Failed to authenticate with {self.service_name}")
        return token

    async def _post_json(self, path: str, access_token: str, payload: Dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient() as client:
            try:
                return await client.post(
                    f"{self.base_url}{path}",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Content-Type": "application/json",
                    },
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                logger.error(f"{self.service_name} request to {path} failed: {e}")
                raise ConnectorUnavailableError(f"Could not connect to {self.service_name} API") from e

    async def verify_pin(self, access_token: str, pin: str) -> Dict[str, Any]:
        response = await self._post_json("/pin/verify", access_token, {"pin": pin})
        result = decode_json_body(response, self.service_name)
        logger.info(f"PIN verification result: {result}")
        return result

    async def check_tcc(self, access_token: str, pin: str) -> Dict[str, Any]:
        response = await self._post_json("/tcc/status", access_token, {"pin": pin})
        result = decode_json_body(response, self.service_name)
        logger.info(f"TCC check result: {result}")
        return result

    async def file_nil_return(
        self,
        access_token: str,
        pin: Optional[str],
        tax_period: str,
        obligation_type: str,
        business_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        response = await self._post_json("/filing/nil", access_token, {
            "pin": pin,
            "taxPeriod": tax_period,
            "obligationType": obligation_type,
            "businessName": business_name,
        })
        result = decode_json_body(response, self.service_name)
        logger.info(f"Nil filing result: {result}")
        return result

    async def get_obligations(self, access_token: str, pin: Optional[str]) -> Dict[str, Any]:
        response = await self._post_json("/obligations", access_token, {"pin": pin})
        result = decode_json_body(response, self.service_name)
        logger.info(f"Obligations result: {result}")
        return result
