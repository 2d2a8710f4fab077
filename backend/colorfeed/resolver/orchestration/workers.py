"""Fixed-size worker pool fed by a bounded work queue."""
import asyncio
import logging
from typing import Awaitable, Callable, List, Tuple

from colorfeed.resolver.cancellation import CancellationToken
from colorfeed.resolver.errors import InvariantError, ResolverError
from colorfeed.resolver.models import ColorResult, WorkItem

logger = logging.getLogger(__name__)

Handler = Callable[[str, CancellationToken], Awaitable[ColorResult]]
Response = Tuple[int, ColorResult]

_CLOSE = object()


class WorkerPool:
    """Pool of ``workers`` tasks draining a queue of at most ``queue_capacity`` items.

    Every submitted item produces exactly one ``(seq, ColorResult)`` on the
    response queue. A failing item becomes a failed result; the pool keeps
    going. Once the token has fired, queued items are answered with a
    cancelled result without touching the network.
    """

    def __init__(
        self,
        handler: Handler,
        responses: "asyncio.Queue[Response]",
        token: CancellationToken,
        workers: int = 3,
        queue_capacity: int = 100
    ):
        if workers < 1:
            raise ValueError("workers must be at least 1")
        if queue_capacity < 1:
            raise ValueError("queue_capacity must be at least 1")
        self._handler = handler
        self._responses = responses
        self._token = token
        self._max_workers = workers
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_capacity)
        self._tasks: List[asyncio.Task] = []
        self._closed = False

    @property
    def queued(self) -> int:
        return self._queue.qsize()

    @property
    def full(self) -> bool:
        return self._queue.full()

    def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker(n), name=f"color-worker-{n}")
            for n in range(self._max_workers)
        ]

    async def submit(self, item: WorkItem) -> None:
        """Queue an item, waiting while the queue is full."""
        if self._closed:
            raise RuntimeError("pool is closed")
        await self._queue.put(item)

    def try_submit(self, item: WorkItem) -> bool:
        """Queue an item without waiting. Returns False if the queue is full."""
        if self._closed:
            raise RuntimeError("pool is closed")
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            return False
        return True

    async def close(self) -> None:
        """Stop accepting items; workers exit after draining the queue."""
        if self._closed:
            return
        self._closed = True
        for _ in self._tasks:
            await self._queue.put(_CLOSE)

    async def join(self) -> None:
        await asyncio.gather(*self._tasks)

    async def shutdown(self) -> None:
        """Cancel all workers and wait for them to finish."""
        self._closed = True
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _worker(self, n: int) -> None:
        while True:
            item = await self._queue.get()
            if item is _CLOSE:
                logger.debug(f"Worker {n} exiting")
                return
            result = await self._process(item)
            await self._responses.put((item.seq, result))

    async def _process(self, item: WorkItem) -> ColorResult:
        if self._token.cancelled:
            return ColorResult.cancelled(item.url, self._token.reason or "cancelled")
        try:
            return await self._handler(item.url, self._token)
        except ResolverError as e:
            logger.info(f"{item.url}: {e.kind.value} {e}")
            return ColorResult.failure(item.url, e)
        except Exception as e:
            logger.exception(f"Unexpected error resolving {item.url}")
            return ColorResult.failure(item.url, InvariantError(f"{e.__class__.__name__}: {e}"))
