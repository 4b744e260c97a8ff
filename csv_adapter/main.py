from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from csv_adapter import __version__
from csv_adapter.api.metrics import router as metrics_router
from csv_adapter.observability.middleware import RequestContextMiddleware
from csv_adapter.snapshot.cache import SnapshotCache


async def _plain_http_error(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
    _ = request
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


def create_app(cache: SnapshotCache) -> FastAPI:
    app = FastAPI(
        title="Prometheus CSV Adapter",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        redirect_slashes=False,
    )
    app.state.snapshot_cache = cache
    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(StarletteHTTPException, _plain_http_error)
    app.include_router(metrics_router)
    return app
