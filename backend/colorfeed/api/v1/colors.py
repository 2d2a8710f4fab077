import json
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from colorfeed.resolver.models import ColorResult, ResolveRequest
from colorfeed.resolver.pipeline import ColorPipeline

router = APIRouter(prefix="/api/v1/colors", tags=["colors"])


class CacheStatsResponse(BaseModel):
    size: int
    capacity: int
    hits: int
    misses: int
    evictions: int


class CachedColorsResponse(BaseModel):
    items: list[ColorResult]
    stats: CacheStatsResponse


def get_pipeline(request: Request) -> ColorPipeline:
    return request.app.state.pipeline


async def _ndjson(pipeline: ColorPipeline, resolve_request: ResolveRequest) -> AsyncIterator[str]:
    async for result in pipeline.resolve(resolve_request):
        yield json.dumps(result.model_dump(mode="json")) + "\n"


@router.get("")
async def stream_colors(
    max: Optional[int] = Query(None, ge=1, le=5000, description="Maximum images to resolve"),
    workers: Optional[int] = Query(None, ge=1, le=200),
    buffer: Optional[int] = Query(None, ge=1, le=10000, description="Queue capacity"),
    deadline: Optional[float] = Query(None, gt=0, le=600, description="Session deadline in seconds"),
    pipeline: ColorPipeline = Depends(get_pipeline)
):
    """
    Stream one JSON line per resolved image, in completion order.
    """
    resolve_request = pipeline.default_request(
        max_images=max,
        workers=workers,
        queue_capacity=buffer,
        deadline_seconds=deadline
    )
    return StreamingResponse(
        _ndjson(pipeline, resolve_request),
        media_type="application/x-ndjson"
    )


@router.get("/cached", response_model=CachedColorsResponse)
async def list_cached_colors(
    limit: int = Query(300, ge=1, le=50000),
    pipeline: ColorPipeline = Depends(get_pipeline)
):
    """
    Colors already in the cache, oldest first.
    """
    cache = pipeline.cache
    stats = cache.stats
    return CachedColorsResponse(
        items=cache.snapshot(limit),
        stats=CacheStatsResponse(
            size=len(cache),
            capacity=cache.capacity,
            hits=stats.hits,
            misses=stats.misses,
            evictions=stats.evictions
        )
    )
