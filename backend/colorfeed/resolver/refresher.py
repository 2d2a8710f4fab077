"""Background cache warming."""
import asyncio
import logging
from typing import Optional

from colorfeed.resolver.models import ResolveRequest
from colorfeed.resolver.pipeline import ColorPipeline

logger = logging.getLogger(__name__)


class CacheRefresher:
    """Periodically resolves a large batch of recent uploads into the cache.

    Sessions run with a long deadline since nobody is waiting on them.
    Failures are logged and never stop the loop.
    """

    def __init__(
        self,
        pipeline: ColorPipeline,
        request: ResolveRequest,
        interval: float = 1800.0
    ):
        self._pipeline = pipeline
        self._request = request
        self._interval = interval
        self._task: Optional[asyncio.Task] = None

    async def run_once(self) -> int:
        """Run one session. Returns the number of successful results."""
        succeeded = 0
        failed = 0
        async for result in self._pipeline.resolve(self._request):
            if result.ok:
                succeeded += 1
            else:
                failed += 1
                logger.debug(f"Refresh miss for {result.url}: {result.error}")
        logger.info(f"Cache refresh complete: {succeeded} ok, {failed} failed, {len(self._pipeline.cache)} cached")
        return succeeded

    async def run_forever(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Cache refresh failed: {e}")
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self.run_forever(), name="cache-refresher")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
