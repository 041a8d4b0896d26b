"""
Product Image Service
Generates product photos through the AI gateway and stores them in
Supabase Storage
"""
import base64
import logging
import re
import time
from typing import Any, Dict, Optional

from app.connectors.errors import ConnectorResponseError, ConnectorUnavailableError
from app.connectors.image_generation_connector import ImageGenerationConnector
from app.core.config import settings
from app.core.database import get_supabase
from app.core.errors import APIError, ResourceNotFoundError, VendorUnavailableError
from app.domain.product import GenerateImageRequest
from app.repositories import ProductRepository

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = re.compile(r"^data:image/\w+;base64,")
PROMPT_SUFFIX = "Clean white background, studio lighting, high quality, commercial product shot, 4K, detailed, realistic"


def build_image_prompt(product_name: str, category: Optional[str] = None, description: Optional[str] = None) -> str:
    parts = [
        f"Professional product photography of {product_name}",
        f"in the {category} category" if category else "",
        f"described as: {description}" if description else "",
        PROMPT_SUFFIX,
    ]
    return ". ".join(part for part in parts if part)


def image_storage_path(product_name: str, timestamp_ms: Optional[int] = None) -> str:
    slug = re.sub(r"[^a-zA-Z0-9]", "_", product_name).lower()
    return f"ai-generated/{timestamp_ms or int(time.time() * 1000)}-{slug}.png"


def decode_data_url(data_url: str) -> bytes:
    return base64.b64decode(DATA_URL_PREFIX.sub("", data_url))


class ProductImageService:

    def __init__(self):
        self.product_repo = ProductRepository()

    async def generate_product_image(self, user_id: str, request: GenerateImageRequest) -> Dict[str, Any]:
        """
        Generate, upload and optionally attach an image to a product

        Returns:
            {"success": True, "image_url": public URL}
        """
        if request.product_id and not self.product_repo.find_by_id(user_id, request.product_id):
            raise ResourceNotFoundError("Product", request.product_id)

        if not settings.AI_GATEWAY_API_KEY:
            raise APIError("AI_GATEWAY_API_KEY is not configured")

        connector = ImageGenerationConnector(settings.AI_GATEWAY_API_KEY)
        prompt = build_image_prompt(request.product_name, request.category, request.description)

        try:
            data_url = await connector.generate_image(prompt)
        except ConnectorUnavailableError as e:
            raise VendorUnavailableError(e.message)
        except ConnectorResponseError as e:
            raise APIError(e.message)

        path = image_storage_path(request.product_name)
        bucket = get_supabase().storage.from_(settings.PRODUCT_IMAGE_BUCKET)

        try:
            bucket.upload(
                path,
                decode_data_url(data_url),
                file_options={"content-type": "image/png", "cache-control": "3600", "upsert": "false"},
            )
        except Exception as e:
            logger.error(f"Upload error for {path}: {e}")
            raise APIError(f"Failed to upload image: {e}") from e

        image_url = bucket.get_public_url(path)
        logger.info(f"Image uploaded successfully: {image_url}")

        if request.product_id:
            self.product_repo.add_image(
                request.product_id, image_url, alt_text=request.product_name, is_primary=True
            )

        return {"success": True, "image_url": image_url}
