from __future__ import annotations

import re
import uuid
from time import perf_counter
from typing import Any, Callable

import structlog
from starlette.datastructures import Headers, MutableHeaders

REQUEST_ID_HEADER = "X-Request-ID"

# Scrapers and proxies may pass their own id; anything odd gets replaced.
_REQUEST_ID_RE = re.compile(r"[A-Za-z0-9._:-]{1,128}")


def _request_id(scope: dict[str, Any]) -> str:
    incoming = Headers(scope=scope).get(REQUEST_ID_HEADER)
    if incoming and _REQUEST_ID_RE.fullmatch(incoming):
        return incoming
    return uuid.uuid4().hex


class RequestContextMiddleware:
    """
    Binds a request id for the duration of a request and writes one access
    log event per response, including where the snapshot came from.
    """

    def __init__(self, app: Callable[..., Any]) -> None:
        self.app = app

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = _request_id(scope)
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = perf_counter()
        status_code = 500
        body_bytes = 0

        async def send_with_request_id(message: dict[str, Any]) -> None:
            nonlocal status_code, body_bytes
            if message["type"] == "http.response.start":
                status_code = int(message["status"])
                MutableHeaders(scope=message)[REQUEST_ID_HEADER] = request_id
            elif message["type"] == "http.response.body":
                body_bytes += len(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            structlog.get_logger("csv_adapter.access").info(
                "http_request",
                request_id=request_id,
                method=scope.get("method"),
                path=scope.get("path"),
                status_code=status_code,
                body_bytes=body_bytes,
                snapshot=scope.get("state", {}).get("snapshot_source"),
                elapsed_ms=round((perf_counter() - start) * 1000.0, 2),
            )
            structlog.contextvars.unbind_contextvars("request_id")
