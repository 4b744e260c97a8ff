from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response

from csv_adapter.snapshot.cache import SnapshotCache

EXPOSITION_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

router = APIRouter(tags=["metrics"])


def get_snapshot_cache(request: Request) -> SnapshotCache:
    return request.app.state.snapshot_cache


# Deliberately async: the cache call blocks the event loop, so requests are
# handled one at a time.
@router.get("/metrics")
async def metrics(request: Request, cache: SnapshotCache = Depends(get_snapshot_cache)) -> Response:
    was_cached = cache.is_populated
    snapshot = cache.read_or_regenerate()
    if snapshot is None:
        request.state.snapshot_source = "unavailable"
        return Response(status_code=500)
    request.state.snapshot_source = "cache" if was_cached else "regenerated"
    return PlainTextResponse(snapshot, media_type=EXPOSITION_CONTENT_TYPE)
