"""Request-scoped log context for the ingress."""

from __future__ import annotations

import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp
from structlog.contextvars import bound_contextvars

from ..core.logging import get_logger

REQUEST_ID_HEADER = "X-Request-Id"

logger = get_logger("case_triage.ingress")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and keep it in the structlog context.

    A caller-supplied ``X-Request-Id`` is reused; otherwise one is generated.
    The id is echoed on the response and appears on every log line emitted
    while the request is handled, including the router and agent loop.
    """

    def __init__(self, app: ASGIApp, header_name: str = REQUEST_ID_HEADER) -> None:
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self.header_name) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        with bound_contextvars(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception:
                logger.exception(
                    "ingress.request.failed",
                    method=request.method,
                    path=request.url.path,
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                )
                raise
            logger.info(
                "ingress.request.completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
            )

        response.headers.setdefault(self.header_name, request_id)
        return response


__all__ = ["REQUEST_ID_HEADER", "RequestIdMiddleware"]
