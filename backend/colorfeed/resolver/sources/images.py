"""Image download and decoding."""
import io
import logging
from typing import Optional

import httpx
from PIL import Image, UnidentifiedImageError

from colorfeed.resolver.base import BaseFetcher
from colorfeed.resolver.cancellation import CancellationToken
from colorfeed.resolver.errors import ParseError

logger = logging.getLogger(__name__)


def decode_image(data: bytes) -> Image.Image:
    """Decode raster bytes (any format Pillow reads) into a loaded image."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise ParseError(f"cannot decode image: {e}") from e
    return img


class ImageFetcher(BaseFetcher):
    """Downloads image bytes; the read aborts when the token fires."""

    def __init__(self, client: httpx.AsyncClient, max_bytes: Optional[int] = None):
        super().__init__(client)
        self._max_bytes = max_bytes

    async def fetch(self, url: str, token: Optional[CancellationToken] = None) -> bytes:
        data = await self._get_bytes(url, token=token, max_bytes=self._max_bytes)
        logger.debug(f"Fetched {len(data)} bytes from {url}")
        return data
