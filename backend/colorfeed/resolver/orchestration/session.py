"""One resolve request: pager -> worker pool -> aggregated result stream."""
import asyncio
import itertools
import logging
from typing import AsyncIterator, Dict, Iterator, Optional

from colorfeed.resolver.cancellation import CancellationToken, Deadline
from colorfeed.resolver.errors import CancelledError, EndOfResults, ResolverError
from colorfeed.resolver.models import ColorResult, ResolveRequest, WorkItem
from colorfeed.resolver.orchestration.workers import Handler, WorkerPool
from colorfeed.resolver.sources.commons import CommonsPager

logger = logging.getLogger(__name__)

_PRODUCER_DONE = object()


class ResolveSession:
    """Streams one ColorResult per submitted URL.

    Results arrive in completion order. The stream ends when the pager is
    exhausted and every submitted item has been answered, or when the token
    fires (deadline or ``cancel()``). In the latter case results already
    waiting are delivered first, then a cancelled result is synthesized for
    every item still outstanding, so the number of results always equals
    ``submitted``.
    """

    def __init__(
        self,
        pager: CommonsPager,
        handler: Handler,
        request: ResolveRequest,
        token: Optional[CancellationToken] = None
    ):
        self.request = request
        self.token = token or CancellationToken()
        self.deadline = Deadline(request.deadline_seconds, self.token)
        self._pager = pager
        self._responses: asyncio.Queue = asyncio.Queue(maxsize=request.queue_capacity)
        self._pool = WorkerPool(
            handler,
            self._responses,
            self.token,
            workers=request.workers,
            queue_capacity=request.queue_capacity
        )
        self._seq = itertools.count()
        self._pending: Dict[int, Optional[str]] = {}
        self._iterated = False
        self.submitted = 0
        self.received = 0
        self.synthesized = 0

    def cancel(self, reason: str = "cancelled by caller") -> bool:
        return self.token.cancel(reason)

    async def results(self) -> AsyncIterator[ColorResult]:
        """Single-pass async iterator over the session's results."""
        if self._iterated:
            raise RuntimeError("session results can only be iterated once")
        self._iterated = True

        self._pool.start()
        producer = asyncio.create_task(self._produce(), name="color-pager")
        producer_done = False
        try:
            while not (producer_done and self.received >= self.submitted):
                try:
                    message = await self.token.race(self._responses.get())
                except CancelledError:
                    break
                if message is _PRODUCER_DONE:
                    producer_done = True
                    continue
                result = self._accept(message)
                if result is not None:
                    yield result

            if self.token.cancelled:
                # Stop submissions before counting what is still outstanding
                producer.cancel()
                await asyncio.gather(producer, return_exceptions=True)
                for result in self._drain():
                    yield result
                for result in self._synthesize():
                    yield result
        finally:
            self.deadline.disarm()
            if not producer_done or self._pending:
                self.token.cancel("session closed")
            producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)
            await self._pool.shutdown()
            logger.info(
                f"Session finished: {self.received}/{self.submitted} results, "
                f"{self.synthesized} synthesized"
            )

    async def _produce(self) -> None:
        while not self.token.cancelled:
            try:
                url = await self._pager.next_url()
            except EndOfResults:
                break
            except CancelledError:
                break
            except ResolverError as e:
                logger.warning(f"Pager stopped: {e}")
                await self._emit_direct(ColorResult.failure(None, e))
                break

            item = WorkItem(seq=next(self._seq), url=url)
            self._pending[item.seq] = url
            self.submitted += 1
            self.deadline.start()
            await self._pool.submit(item)

        await self._pool.close()
        await self._responses.put(_PRODUCER_DONE)

    async def _emit_direct(self, result: ColorResult) -> None:
        seq = next(self._seq)
        self._pending[seq] = result.url
        self.submitted += 1
        await self._responses.put((seq, result))

    def _accept(self, message) -> Optional[ColorResult]:
        seq, result = message
        if seq not in self._pending:
            # Already answered with a synthesized result
            return None
        del self._pending[seq]
        self.received += 1
        return result

    def _drain(self) -> Iterator[ColorResult]:
        while True:
            try:
                message = self._responses.get_nowait()
            except asyncio.QueueEmpty:
                return
            if message is _PRODUCER_DONE:
                continue
            result = self._accept(message)
            if result is not None:
                yield result

    def _synthesize(self) -> Iterator[ColorResult]:
        reason = self.token.reason or "cancelled"
        for seq in list(self._pending):
            url = self._pending.pop(seq)
            self.received += 1
            self.synthesized += 1
            yield ColorResult.cancelled(url, reason)
