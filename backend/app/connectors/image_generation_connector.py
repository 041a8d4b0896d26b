"""
AI gateway connector for product image generation

The gateway speaks the OpenAI chat-completions shape; image models answer
with base64 data URLs under choices[0].message.images.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from app.connectors.errors import ConnectorResponseError, ConnectorUnavailableError, decode_json_body
from app.core.config import settings

logger = logging.getLogger(__name__)


def extract_image_url(data: Dict[str, Any]) -> Optional[str]:
    try:
        return data["choices"][0]["message"]["images"][0]["image_url"]["url"]
    except (KeyError, IndexError, TypeError):
        return None


class ImageGenerationConnector:

    def __init__(
        self,
        api_key: str,
        url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        if not api_key:
            raise ValueError("AI_GATEWAY_API_KEY is not configured")

        self.api_key = api_key
        self.url = url or settings.AI_GATEWAY_URL
        self.model = model or settings.AI_IMAGE_MODEL
        # Image models are slow; give them at least two minutes
        self.timeout = max(timeout or settings.HTTP_TIMEOUT_SECONDS, 120.0)

    async def generate_image(self, prompt: str) -> str:
        """
        Generate one image for the prompt

        Returns:
            data:image/...;base64,... URL

        Raises:
            ConnectorResponseError: gateway error or no image in the reply
        """
        logger.info(f"Generating image with prompt: {prompt}")

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    self.url,
                    json={
                        "model": self.model,
                        "messages": [{"role": "user", "content": prompt}],
                        "modalities": ["image", "text"],
                    },
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                logger.error(f"AI Gateway request failed: {e}")
                raise ConnectorUnavailableError("Could not reach AI gateway") from e

        if not response.is_success:
            logger.error(f"AI Gateway error: {response.text}")
            raise ConnectorResponseError(f"AI Gateway error: {response.status_code}")

        data = decode_json_body(response, "AI Gateway")
        image_url = extract_image_url(data)
        if not image_url:
            logger.error(f"No image in response: {data}")
            raise ConnectorResponseError("No image generated")

        return image_url
