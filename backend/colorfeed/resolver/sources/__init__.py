from colorfeed.resolver.sources.commons import CommonsPager, PageCursor, QueryResponse
from colorfeed.resolver.sources.images import ImageFetcher, decode_image

__all__ = [
    "CommonsPager", "PageCursor", "QueryResponse",
    "ImageFetcher", "decode_image"
]
