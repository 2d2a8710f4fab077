"""
Pytest configuration and fixtures.
"""
import asyncio
import io
from typing import AsyncGenerator, Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio
from PIL import Image

from colorfeed.core.config import Settings
from colorfeed.resolver.colors import FirstColorStrategy
from colorfeed.resolver.pipeline import ColorPipeline
from colorfeed.resolver.utils.cache import ColorCache

API_URL = "https://commons.test/w/api.php"


def png_bytes(color: Tuple[int, int, int] = (255, 0, 0), size: Tuple[int, int] = (4, 4)) -> bytes:
    """Encode a solid-color PNG."""
    img = Image.new("RGB", size, color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class FakeCommons:
    """In-memory stand-in for the listing API and the image servers.

    ``pages`` is a list of URL lists. Every page but the last carries a
    continuation cursor pointing at the next one.
    """

    def __init__(
        self,
        pages: List[List[str]],
        images: Optional[Dict[str, bytes]] = None,
        image_delay: float = 0.0,
        failing: Optional[set] = None
    ):
        self.pages = pages
        self.images = images or {}
        self.image_delay = image_delay
        self.failing = failing or set()
        self.listing_calls: List[Dict[str, str]] = []
        self.image_calls: List[str] = []

    async def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url.startswith(API_URL):
            params = dict(request.url.params)
            self.listing_calls.append(params)
            index = int(params["aicontinue"].removeprefix("page")) if "aicontinue" in params else 0
            body = {"batchcomplete": "", "query": {"allimages": [{"url": u, "name": u} for u in self.pages[index]]}}
            if index + 1 < len(self.pages):
                body["continue"] = {"aicontinue": f"page{index + 1}", "continue": "-||"}
            return httpx.Response(200, json=body)

        self.image_calls.append(url)
        if self.image_delay:
            await asyncio.sleep(self.image_delay)
        if url in self.failing:
            return httpx.Response(500)
        return httpx.Response(200, content=self.images.get(url, png_bytes()))


def image_urls(count: int, prefix: str = "img") -> List[str]:
    return [f"https://upload.test/{prefix}{i}.png" for i in range(count)]


@pytest.fixture
def fake_commons():
    """The FakeCommons class, so tests can build upstreams with their own pages."""
    return FakeCommons


@pytest.fixture
def png():
    return png_bytes


@pytest.fixture
def urls():
    return image_urls


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        COMMONS_API_URL=API_URL,
        DEFAULT_MAX_IMAGES=3,
        DEFAULT_WORKERS=2,
        DEFAULT_QUEUE_CAPACITY=10,
        DEFAULT_DEADLINE_SECONDS=5.0,
        CACHE_CAPACITY=100,
    )


@pytest.fixture
def make_pipeline(test_settings):
    """Factory building a pipeline whose HTTP traffic goes to a FakeCommons."""
    clients = []

    def _make(upstream: FakeCommons, cache: Optional[ColorCache] = None, strategy=None) -> ColorPipeline:
        client = httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler))
        clients.append(client)
        return ColorPipeline(
            client=client,
            cache=cache or ColorCache(test_settings.CACHE_CAPACITY),
            strategy=strategy or FirstColorStrategy(),
            config=test_settings
        )

    return _make


@pytest_asyncio.fixture
async def api_client(make_pipeline) -> AsyncGenerator[Tuple[httpx.AsyncClient, FakeCommons], None]:
    """Async test HTTP client for the FastAPI app, backed by a fake upstream."""
    from main import app

    upstream = FakeCommons([image_urls(3)])
    pipeline = make_pipeline(upstream)
    app.state.pipeline = pipeline
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac, upstream
    await pipeline.client.aclose()
