"""Wikimedia Commons recent-uploads pager."""
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from colorfeed.resolver.base import BaseFetcher
from colorfeed.resolver.cancellation import CancellationToken
from colorfeed.resolver.errors import EndOfResults, ParseError

logger = logging.getLogger(__name__)

COMMONS_API_URL = "https://commons.wikimedia.org/w/api.php"
API_PAGE_MAX = 500


class ContinueBlock(BaseModel):
    continue_: Optional[str] = Field(default=None, alias="continue")
    aicontinue: Optional[str] = None


class ImageEntry(BaseModel):
    url: str


class QueryBlock(BaseModel):
    allimages: List[ImageEntry] = Field(default_factory=list)


class ApiError(BaseModel):
    code: str = "unknown"
    info: str = ""


class QueryResponse(BaseModel):
    """The parts of an ``list=allimages`` response we read."""
    continue_: Optional[ContinueBlock] = Field(default=None, alias="continue")
    query: QueryBlock = Field(default_factory=QueryBlock)
    error: Optional[ApiError] = None


@dataclass(frozen=True)
class PageCursor:
    """Two-part continuation token, always carried whole."""
    continue_: str
    aicontinue: str

    @classmethod
    def from_response(cls, qr: QueryResponse) -> Optional["PageCursor"]:
        block = qr.continue_
        if block is None:
            return None
        if bool(block.continue_) != bool(block.aicontinue):
            raise ParseError("partial continuation cursor in listing response")
        if not block.continue_:
            return None
        return cls(continue_=block.continue_, aicontinue=block.aicontinue)

    def as_params(self) -> Dict[str, str]:
        return {"continue": self.continue_, "aicontinue": self.aicontinue}


class CommonsPager(BaseFetcher):
    """Yields the most recently uploaded image URLs, one at a time.

    Pages are fetched lazily: a new upstream call is made only when the
    current page is exhausted. The pager holds a single cursor and must not
    be driven from more than one task at once.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_images: int,
        api_url: str = COMMONS_API_URL,
        page_max: int = API_PAGE_MAX,
        token: Optional[CancellationToken] = None
    ):
        super().__init__(client)
        self.max_images = max_images
        self._api_url = api_url
        self._page_max = page_max
        self._token = token
        self._page: List[str] = []
        self._index = 0
        self._cursor: Optional[PageCursor] = None
        self._fetched = False
        self._done = False
        self.count = 0
        self.calls = 0

    def _params(self) -> Dict[str, str]:
        params = {
            "action": "query",
            "format": "json",
            "list": "allimages",
            "aidir": "descending",
            "aisort": "timestamp",
            "ailimit": str(min(self._page_max, self.max_images - self.count)),
        }
        if self._cursor is not None:
            params.update(self._cursor.as_params())
        return params

    async def next_url(self) -> str:
        """Return the next image URL.

        Raises:
            EndOfResults: max reached or the listing is exhausted.
            TransportError: the listing request failed.
            ParseError: the listing response was malformed.
            CancelledError: the session token fired.
        """
        if self._token is not None:
            self._token.raise_if_cancelled()
        if self._done or self.count >= self.max_images:
            raise EndOfResults()

        if self._index < len(self._page):
            return self._take()

        # Current page exhausted; the last page of a listing carries no cursor
        if self._fetched and self._cursor is None:
            self._done = True
            raise EndOfResults()

        self.calls += 1
        data = await self._get_json(self._api_url, params=self._params(), token=self._token)
        try:
            qr = QueryResponse.model_validate(data)
        except ValidationError as e:
            raise ParseError(f"unexpected listing response: {e}") from e
        if qr.error is not None:
            raise ParseError(f"listing API error {qr.error.code}: {qr.error.info}")

        # Both parts of the cursor move forward together, or not at all
        self._cursor = PageCursor.from_response(qr)
        self._page = [img.url for img in qr.query.allimages]
        self._index = 0
        self._fetched = True
        logger.debug(f"Fetched page {self.calls} with {len(self._page)} images")

        if not self._page:
            self._done = True
            raise EndOfResults()

        return self._take()

    def _take(self) -> str:
        url = self._page[self._index]
        self._index += 1
        self.count += 1
        return url

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        try:
            return await self.next_url()
        except EndOfResults:
            raise StopAsyncIteration
