"""Base fetcher: shared httpx client, cancellation and error mapping."""
import json
import logging
from typing import Any, Dict, Optional

import httpx

from colorfeed.resolver.cancellation import CancellationToken
from colorfeed.resolver.errors import ParseError, TransportError

logger = logging.getLogger(__name__)


def build_client(user_agent: str, timeout: float) -> httpx.AsyncClient:
    """Create the AsyncClient shared by the pager and the image fetcher."""
    return httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=True,
        headers={"User-Agent": user_agent},
    )


class BaseFetcher:
    """Base class for everything that talks to the network.

    The client is owned by the caller; fetchers never close it. Every request
    runs under ``token.race`` when a token is given, so cancelling the token
    aborts the underlying read.
    """

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, str]] = None,
        token: Optional[CancellationToken] = None
    ) -> Any:
        """GET a URL and parse its JSON body."""
        response = await self._run(self._request(url, params), token)
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"invalid JSON from {url}: {e}") from e

    async def _get_bytes(
        self,
        url: str,
        token: Optional[CancellationToken] = None,
        max_bytes: Optional[int] = None
    ) -> bytes:
        """Stream a URL's body into memory, checking the token between chunks."""
        return await self._run(self._stream(url, token, max_bytes), token)

    async def _run(self, aw, token: Optional[CancellationToken]):
        if token is None:
            return await aw
        return await token.race(aw)

    async def _request(self, url: str, params: Optional[Dict[str, str]]) -> httpx.Response:
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"GET {url} failed: {e}") from e
        return response

    async def _stream(
        self,
        url: str,
        token: Optional[CancellationToken],
        max_bytes: Optional[int]
    ) -> bytes:
        chunks = []
        size = 0
        try:
            async with self._client.stream("GET", url) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes():
                    if token is not None:
                        token.raise_if_cancelled()
                    size += len(chunk)
                    if max_bytes is not None and size > max_bytes:
                        raise TransportError(f"{url} exceeds {max_bytes} bytes")
                    chunks.append(chunk)
        except httpx.HTTPError as e:
            raise TransportError(f"GET {url} failed: {e}") from e
        return b"".join(chunks)
