"""Loading images for multimodal turns.

Images come from raw bytes, a local file, or a remote URL. Whatever the
source, the bytes are decoded with Pillow before they are accepted, and the
result is an ``ImagePayload`` with a media type the backend accepts.
"""

import base64
import logging
from io import BytesIO
from pathlib import Path

import httpx
from PIL import Image

from .backend.models import ImagePayload
from .errors import GemchatError

logger = logging.getLogger(__name__)

# Inline request data limit on the Gemini API
MAX_IMAGE_BYTES = 20 * 1024 * 1024

THUMBNAIL_SIZE = (256, 256)

# Pillow format name -> media type accepted for inline image parts
SUPPORTED_FORMATS = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "GIF": "image/gif",
    "BMP": "image/bmp",
    "WEBP": "image/webp",
}


class ImageLoadError(GemchatError):
    """An image could not be read, downloaded, or decoded."""


def sniff_mime_type(data: bytes) -> str:
    """Decode image bytes with Pillow and return their media type.

    Raises:
        ImageLoadError: If the bytes are not a valid image in a supported format
    """
    try:
        with Image.open(BytesIO(data)) as image:
            image_format = image.format
            image.verify()
    except Image.DecompressionBombError as e:
        raise ImageLoadError(f"Image is too large to decode: {e}") from e
    # Pillow reports corrupt data as OSError, SyntaxError or struct.error
    except Exception as e:
        raise ImageLoadError(f"Unsupported or unrecognised image format: {e}") from e

    mime_type = SUPPORTED_FORMATS.get(image_format or "")
    if mime_type is None:
        raise ImageLoadError(f"Unsupported image format: {image_format}")
    return mime_type


def make_thumbnail(data: bytes, size: tuple[int, int] = THUMBNAIL_SIZE) -> bytes:
    """Downscale an image to fit ``size`` and encode it as PNG.

    Raises:
        ImageLoadError: If the image cannot be decoded
    """
    try:
        with Image.open(BytesIO(data)) as image:
            image.thumbnail(size)
            if image.mode not in ("1", "L", "LA", "P", "RGB", "RGBA"):
                image = image.convert("RGB")
            buffer = BytesIO()
            image.save(buffer, format="PNG")
    except Exception as e:
        raise ImageLoadError(f"Could not decode image: {e}") from e
    return buffer.getvalue()


def thumbnail_uri(payload: ImagePayload, size: tuple[int, int] = THUMBNAIL_SIZE) -> str:
    """PNG thumbnail of the payload as a ``data:`` URI, for previews."""
    encoded = base64.b64encode(make_thumbnail(payload.data, size)).decode("ascii")
    return f"data:image/png;base64,{encoded}"


def is_remote(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def payload_from_bytes(data: bytes, source: str | None = None) -> ImagePayload:
    if not data:
        raise ImageLoadError("Image is empty")
    if len(data) > MAX_IMAGE_BYTES:
        raise ImageLoadError(
            f"Image is too large ({len(data)} bytes, limit {MAX_IMAGE_BYTES})"
        )
    return ImagePayload(data=data, mime_type=sniff_mime_type(data), source=source)


async def fetch_image(
    url: str,
    timeout: float = 30.0,
    client: httpx.AsyncClient | None = None,
) -> ImagePayload:
    """Download an image from a URL.

    Args:
        url: http(s) URL of the image
        timeout: Request timeout in seconds
        client: Optional shared httpx client

    Returns:
        ImagePayload with the downloaded bytes
    """
    logger.debug("Fetching image from %s", url)
    try:
        if client is not None:
            response = await client.get(url, timeout=timeout, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as owned:
                response = await owned.get(url)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise ImageLoadError(f"Could not download image from {url}: {e}") from e

    return payload_from_bytes(response.content, source=url)


async def load_image(
    source: ImagePayload | bytes | str | Path,
    timeout: float = 30.0,
    client: httpx.AsyncClient | None = None,
) -> ImagePayload:
    """Turn any supported image source into an ImagePayload.

    Args:
        source: Payload (returned as is), raw bytes, file path, or http(s) URL
        timeout: Download timeout for URLs
        client: Optional shared httpx client for URLs

    Returns:
        ImagePayload ready to be sent to a backend

    Raises:
        ImageLoadError: If the image cannot be read or is not a supported format
    """
    if isinstance(source, ImagePayload):
        return source
    if isinstance(source, (bytes, bytearray)):
        return payload_from_bytes(bytes(source), source="memory:")
    if isinstance(source, str) and is_remote(source):
        return await fetch_image(source, timeout=timeout, client=client)

    path = Path(source).expanduser()
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ImageLoadError(f"Could not read image {path}: {e.strerror or e}") from e
    return payload_from_bytes(data, source=str(path))
