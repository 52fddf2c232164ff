"""
Image generation module over the OpenAI Images API
"""
import os
import logging
from typing import Any, Dict
from stylestudio.models.openai_client import get_client

logger = logging.getLogger(__name__)


def image_url_from_response(response) -> str:
    """
    Normalize an Images API response to a URL
    Base64 payloads become data:image/png;base64 URLs so every stored image is a URL
    """
    data = getattr(response, "data", None) or []
    if not data:
        raise ValueError("No image data returned from OpenAI")
    item = data[0]
    b64_json = getattr(item, "b64_json", None)
    if b64_json:
        return f"data:image/png;base64,{b64_json}"
    url = getattr(item, "url", None)
    if url:
        return url
    raise ValueError("No image URL or base64 data in OpenAI response")


class ImageModule:
    """
    Image provider: one call in, one image URL out
    """
    def __init__(self, client=None):
        """
        Initialize image module
        Args:
            client: OpenAI async client (defaults to the shared client, created on first use)
        """
        self.client = client

    def _get_client(self):
        if self.client is None:
            self.client = get_client()
        return self.client

    async def generate_image(self, params: Dict[str, Any]) -> str:
        """
        Generate a single image
        Args:
            params: Request built by capabilities.build_image_request
        Returns:
            Image URL (remote or data URL)
        """
        logger.info(f"Generating image with {params.get('model')} ({len(params.get('prompt', ''))} chars)")
        response = await self._get_client().images.generate(**params)
        return image_url_from_response(response)

    async def edit_image(self, params: Dict[str, Any], image_path: str) -> str:
        """
        Edit an existing image
        Args:
            params: Request built by capabilities.build_image_request with operation "edit"
            image_path: Local RGBA PNG to edit
        Returns:
            Image URL (remote or data URL)
        """
        logger.info(f"Editing image {image_path} with {params.get('model')}")
        with open(image_path, "rb") as image_file:
            response = await self._get_client().images.edit(
                image=(os.path.basename(image_path), image_file, "image/png"),
                **params
            )
        return image_url_from_response(response)


image_module = ImageModule()
