"""
Errors raised by the vendor API connectors

Services translate these into APIError responses.
"""
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ConnectorError(Exception):
    """Base error for vendor API calls"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConnectorAuthError(ConnectorError):
    """The vendor rejected the client credentials exchange"""


class ConnectorUnavailableError(ConnectorError):
    """The vendor could not be reached (DNS, TLS, timeout)"""


class ConnectorResponseError(ConnectorError):
    """The vendor answered but reported a failure"""


class WebhookSignatureError(ConnectorError):
    """A webhook signature is missing, malformed or does not match"""


def decode_json_body(response: Any, service_name: str) -> Dict[str, Any]:
    """
    JSON object from a vendor reply

    A body that is not a JSON object (a gateway error page, say) is treated
    like an unreachable service, so callers mark the attempt failed.

    Raises:
        ConnectorUnavailableError: body is not a JSON object
    """
    try:
        body = response.json()
    except ValueError as e:
        logger.error(f"{service_name} returned a non-JSON reply: {response.status_code}")
        raise ConnectorUnavailableError(
            f"Invalid response from {service_name} API",
            details={"status_code": response.status_code},
        ) from e

    if not isinstance(body, dict):
        logger.error(f"{service_name} returned an unexpected reply: {body!r}")
        raise ConnectorUnavailableError(
            f"Invalid response from {service_name} API",
            details={"status_code": response.status_code},
        )
    return body
