"""Configurable color pipeline shared by the CLI, the API and the refresher."""
import asyncio
import logging
import threading
from contextlib import aclosing
from typing import AsyncIterator, Dict, Optional

import httpx

from colorfeed.core.config import Settings, settings as default_settings
from colorfeed.resolver.base import build_client
from colorfeed.resolver.cancellation import CancellationToken
from colorfeed.resolver.colors import ColorStrategy, get_strategy
from colorfeed.resolver.errors import InvariantError
from colorfeed.resolver.models import ColorResult, PaletteColor, ResolveRequest
from colorfeed.resolver.orchestration.session import ResolveSession
from colorfeed.resolver.sources import CommonsPager, ImageFetcher, decode_image
from colorfeed.resolver.utils.cache import ColorCache

logger = logging.getLogger(__name__)


class ColorResolver:
    """Resolves a single URL: cache hit, or fetch + decode + compute.

    Concurrent misses for the same URL are collapsed: the first caller does
    the work while the others wait for it and then read the cache. If the
    first caller fails, nothing is cached and the next waiter tries itself.
    """

    def __init__(self, fetcher: ImageFetcher, cache: ColorCache, strategy: ColorStrategy):
        self._fetcher = fetcher
        self._cache = cache
        self._strategy = strategy
        self._inflight: Dict[str, asyncio.Future] = {}
        self._lock = threading.Lock()
        self.computations = 0

    async def resolve(self, url: str, token: Optional[CancellationToken] = None) -> ColorResult:
        while True:
            cached, found = self._cache.get(url)
            if found:
                return cached
            leader = self._inflight.get(url)
            if leader is None:
                break
            waiter = asyncio.shield(leader)
            await (token.race(waiter) if token is not None else waiter)

        done = asyncio.get_running_loop().create_future()
        self._inflight[url] = done
        try:
            return await self._resolve_uncached(url, token)
        finally:
            del self._inflight[url]
            done.set_result(None)

    async def _resolve_uncached(self, url: str, token: Optional[CancellationToken]) -> ColorResult:
        data = await self._fetcher.fetch(url, token=token)
        work = asyncio.to_thread(self._compute, data, token)
        color = await (token.race(work) if token is not None else work)
        if not isinstance(color, PaletteColor):
            raise InvariantError(f"strategy {self._strategy.name} returned {type(color).__name__}")

        result = ColorResult.success(url, color)
        self._cache.add(url, result)
        return result

    def _compute(self, data: bytes, token: Optional[CancellationToken]) -> PaletteColor:
        image = decode_image(data)
        try:
            with self._lock:
                self.computations += 1
            return self._strategy.compute(image, token)
        finally:
            image.close()


class ColorPipeline:
    """Owns the HTTP client, the cache and the strategy; opens sessions.

    Use as an async context manager, or call ``aclose()``, to release the
    client when the pipeline created it.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: ColorCache,
        strategy: ColorStrategy,
        config: Settings = default_settings,
        owns_client: bool = False
    ):
        self.client = client
        self.cache = cache
        self.strategy = strategy
        self.config = config
        self._owns_client = owns_client
        self.resolver = ColorResolver(
            ImageFetcher(client, max_bytes=config.MAX_IMAGE_BYTES),
            cache,
            strategy
        )

    @classmethod
    def from_settings(cls, config: Settings = default_settings) -> "ColorPipeline":
        client = build_client(config.USER_AGENT, config.HTTP_TIMEOUT_SECONDS)
        return cls(
            client=client,
            cache=ColorCache(config.CACHE_CAPACITY),
            strategy=get_strategy(config.COLOR_STRATEGY, check_every=config.CANCEL_CHECK_ROWS),
            config=config,
            owns_client=True
        )

    def default_request(self, **overrides) -> ResolveRequest:
        values = {
            "max_images": self.config.DEFAULT_MAX_IMAGES,
            "workers": self.config.DEFAULT_WORKERS,
            "queue_capacity": self.config.DEFAULT_QUEUE_CAPACITY,
            "deadline_seconds": self.config.DEFAULT_DEADLINE_SECONDS,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ResolveRequest(**values)

    def open_session(self, request: ResolveRequest) -> ResolveSession:
        token = CancellationToken()
        pager = CommonsPager(
            self.client,
            max_images=request.max_images,
            api_url=self.config.COMMONS_API_URL,
            page_max=self.config.API_PAGE_MAX,
            token=token
        )
        return ResolveSession(pager, self.resolver.resolve, request, token=token)

    async def resolve(self, request: ResolveRequest) -> AsyncIterator[ColorResult]:
        session = self.open_session(request)
        logger.info(
            f"Resolving up to {request.max_images} images "
            f"({request.workers} workers, {request.deadline_seconds:.1f}s deadline)"
        )
        async with aclosing(session.results()) as results:
            async for result in results:
                yield result

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "ColorPipeline":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
