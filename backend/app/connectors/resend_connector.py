"""
Resend API Connector
Transactional email (subscription confirmations)
"""
import logging
from typing import List, Optional, Union

import httpx

from app.connectors.errors import ConnectorResponseError, ConnectorUnavailableError, decode_json_body
from app.core.config import settings

logger = logging.getLogger(__name__)


class ResendConnector:

    def __init__(self, api_key: str, base_url: Optional[str] = None, timeout: Optional[float] = None):
        if not api_key:
            raise ValueError("RESEND_API_KEY not configured")

        self.api_key = api_key
        self.base_url = (base_url or settings.RESEND_API_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    async def send_email(self, sender: str, to: Union[str, List[str]], subject: str, html: str) -> Optional[str]:
        """
        Send one HTML email

        Returns:
            Resend email id
        """
        recipients = [to] if isinstance(to, str) else list(to)

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    f"{self.base_url}/emails",
                    json={"from": sender, "to": recipients, "subject": subject, "html": html},
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                logger.error(f"Resend request failed: {e}")
                raise ConnectorUnavailableError("Could not reach email service") from e

        data = decode_json_body(response, "Resend")
        if not response.is_success:
            logger.error(f"Failed to send email: {response.status_code} - {data}")
            raise ConnectorResponseError("Failed to send email", details=data)

        logger.info(f"Email sent successfully: {data.get('id')}")
        return data.get("id")
