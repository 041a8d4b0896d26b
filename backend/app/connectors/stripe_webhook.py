"""
Stripe webhook signature verification

Stripe signs each delivery with the endpoint secret:
    Stripe-Signature: t=1700000000,v1=<hex hmac-sha256 of "t.payload">
"""
import hashlib
import hmac
import json
import logging
import time
from typing import Any, Dict, List, Optional

from app.connectors.errors import WebhookSignatureError

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300


class StripeWebhookVerifier:

    def __init__(self, secret: Optional[str], tolerance: int = DEFAULT_TOLERANCE_SECONDS):
        self.secret = secret
        self.tolerance = tolerance

    @staticmethod
    def _parse_header(sig_header: str) -> tuple:
        timestamp: Optional[int] = None
        signatures: List[str] = []
        for part in sig_header.split(","):
            key, _, value = part.strip().partition("=")
            if key == "t":
                try:
                    timestamp = int(value)
                except ValueError:
                    raise WebhookSignatureError("Invalid Stripe signature timestamp")
            elif key == "v1":
                signatures.append(value)
        return timestamp, signatures

    def compute_signature(self, payload: bytes, timestamp: int) -> str:
        signed = f"{timestamp}.".encode() + payload
        return hmac.new(self.secret.encode(), signed, hashlib.sha256).hexdigest()

    def construct_event(
        self,
        payload: bytes,
        sig_header: Optional[str],
        now: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Verify the delivery and return the parsed event

        Without a configured secret the body is parsed unverified.

        Raises:
            WebhookSignatureError: bad or stale signature
            ValueError: payload is not JSON
        """
        if not self.secret:
            logger.warning("STRIPE_WEBHOOK_SECRET not set, accepting unverified Stripe event")
            return json.loads(payload)

        if not sig_header:
            raise WebhookSignatureError("Missing Stripe-Signature header")

        timestamp, signatures = self._parse_header(sig_header)
        if timestamp is None or not signatures:
            raise WebhookSignatureError("Malformed Stripe-Signature header")

        expected = self.compute_signature(payload, timestamp)
        if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
            raise WebhookSignatureError("Stripe signature mismatch")

        now = now if now is not None else time.time()
        if self.tolerance and abs(now - timestamp) > self.tolerance:
            raise WebhookSignatureError("Stripe signature timestamp outside tolerance")

        return json.loads(payload)
