"""
Image file helpers: downloads to scratch files, RGBA normalization, upload conversion
"""
import base64
import binascii
import io
import os
import re
import uuid
import logging
from typing import Optional, Tuple
import httpx
from PIL import Image, UnidentifiedImageError
from stylestudio.config.settings import settings

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:([^;]+);base64,(.+)$", re.DOTALL)

# Formats the edit endpoint and the browser both accept as-is
SUPPORTED_CONTENT_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/webp": ".webp",
}
UPLOAD_PASSTHROUGH_TYPES = {"image/png", "image/jpeg", "image/webp", "image/gif"}


class ImageDownloadError(Exception):
    """Source image could not be fetched or decoded"""


class ImageConversionError(Exception):
    """Image could not be converted to the required format"""


def _temp_path(extension: str, temp_dir: Optional[str] = None) -> str:
    directory = temp_dir or settings.TEMP_DIR
    os.makedirs(directory, exist_ok=True)
    return os.path.join(directory, f"temp_image_{uuid.uuid4().hex}{extension}")


def decode_data_url(image_url: str) -> Tuple[bytes, str]:
    """
    Decode a base64 data URL
    Returns:
        (image bytes, content type)
    """
    match = DATA_URL_PATTERN.match(image_url)
    if not match:
        raise ImageDownloadError("Invalid data URL format")
    mime_type, payload = match.groups()
    if mime_type not in SUPPORTED_CONTENT_TYPES:
        raise ImageDownloadError(f"Unsupported MIME type in data URL: {mime_type}")
    try:
        return base64.b64decode(payload, validate=False), mime_type
    except (binascii.Error, ValueError) as e:
        raise ImageDownloadError(f"Failed to decode data URL: {e}")


async def fetch_image_bytes(image_url: str, http_client: Optional[httpx.AsyncClient] = None) -> Tuple[bytes, str]:
    """
    Fetch image bytes from a data URL or an http(s) URL
    Returns:
        (image bytes, content type)
    """
    if image_url.startswith("data:"):
        return decode_data_url(image_url)
    if not image_url.startswith(("http://", "https://")):
        raise ImageDownloadError(f"Unsupported image URL scheme: {image_url[:30]}")

    try:
        if http_client is not None:
            response = await http_client.get(image_url)
        else:
            async with httpx.AsyncClient(timeout=settings.DOWNLOAD_TIMEOUT_SECONDS, follow_redirects=True) as client:
                response = await client.get(image_url)
    except httpx.HTTPError as e:
        raise ImageDownloadError(f"Failed to download image: {e}")

    if response.status_code != 200:
        raise ImageDownloadError(f"Failed to download image: {response.status_code}")

    content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type and not content_type.startswith("image/"):
        raise ImageDownloadError(
            f"Unsupported content type: {content_type}. Only image/jpeg, image/png, and image/webp are supported."
        )
    if content_type not in SUPPORTED_CONTENT_TYPES:
        content_type = "image/png"
    return response.content, content_type


async def download_image_to_temp_file(
    image_url: str,
    temp_dir: Optional[str] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> str:
    """
    Save a source image to a randomly named scratch file
    Args:
        image_url: Remote URL or data URL
        temp_dir: Scratch directory (defaults to settings.TEMP_DIR)
        http_client: Optional httpx client for remote downloads
    Returns:
        Path of the scratch file
    """
    image_data, content_type = await fetch_image_bytes(image_url, http_client)
    path = _temp_path(SUPPORTED_CONTENT_TYPES[content_type], temp_dir)
    with open(path, "wb") as f:
        f.write(image_data)
    logger.info(f"Image saved to {path} ({content_type}, {len(image_data)} bytes)")
    return path


def rgba_path(image_path: str) -> str:
    """Path of the RGBA PNG copy of a scratch file"""
    stem, _ = os.path.splitext(image_path)
    return f"{stem}_rgba.png"


def convert_to_rgba_png(image_path: str) -> str:
    """
    Write an RGBA PNG copy next to the source file
    Returns:
        Path of the converted file (<name>_rgba.png)
    """
    converted_path = rgba_path(image_path)
    try:
        with Image.open(image_path) as image:
            image.convert("RGBA").save(converted_path, format="PNG")
    except (OSError, UnidentifiedImageError, ValueError) as e:
        logger.error(f"Failed to convert image to RGBA format: {e}")
        raise ImageConversionError("Image format conversion failed - regeneration requires RGBA format")
    logger.info(f"Image converted to RGBA format: {converted_path}")
    return converted_path


def remove_temp_file(path: Optional[str]) -> None:
    """Delete a scratch file if it exists"""
    if not path:
        return
    try:
        if os.path.exists(path):
            os.remove(path)
            logger.info(f"Cleaned up temporary image file: {path}")
    except OSError as e:
        logger.error(f"Error cleaning up temp file {path}: {e}")


def normalize_upload(image_data: bytes, content_type: str) -> Tuple[bytes, str]:
    """
    Convert an uploaded image to PNG unless its format is already supported
    Returns:
        (image bytes, content type)
    """
    if content_type in UPLOAD_PASSTHROUGH_TYPES:
        return image_data, content_type
    try:
        with Image.open(io.BytesIO(image_data)) as image:
            buffer = io.BytesIO()
            image.convert("RGBA").save(buffer, format="PNG")
    except (OSError, UnidentifiedImageError, ValueError) as e:
        raise ImageConversionError(f"Unsupported or corrupt image: {e}")
    logger.info(f"Converted uploaded {content_type or 'unknown'} image to PNG")
    return buffer.getvalue(), "image/png"


def to_data_url(image_data: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(image_data).decode('utf-8')}"
