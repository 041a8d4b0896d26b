"""
Connectors - vendor API clients

Each connector takes the credentials it needs explicitly and raises
ConnectorError subclasses on failure.
"""
from app.connectors.errors import (
    ConnectorError,
    ConnectorAuthError,
    ConnectorUnavailableError,
    ConnectorResponseError,
    WebhookSignatureError,
)
from app.connectors.mpesa_connector import MpesaConnector
from app.connectors.paystack_connector import PaystackConnector
from app.connectors.stripe_webhook import StripeWebhookVerifier
from app.connectors.kra_connector import KraConnector
from app.connectors.etims_connector import EtimsConnector
from app.connectors.resend_connector import ResendConnector
from app.connectors.image_generation_connector import ImageGenerationConnector

__all__ = [
    'ConnectorError',
    'ConnectorAuthError',
    'ConnectorUnavailableError',
    'ConnectorResponseError',
    'WebhookSignatureError',
    'MpesaConnector',
    'PaystackConnector',
    'StripeWebhookVerifier',
    'KraConnector',
    'EtimsConnector',
    'ResendConnector',
    'ImageGenerationConnector',
]
