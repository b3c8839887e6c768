"""HTTP ingress for failure events."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..config.loader import load_pipeline_config
from ..core.errors import ApplicationError, ValidationError, error_response
from ..core.logging import get_logger
from ..core.settings import Settings, get_settings
from ..pipeline import Pipeline, build_pipeline
from .middleware import RequestIdMiddleware

logger = get_logger(__name__)


def sanitize_event(
    body: Any, *, required_fields: list[str], allowed_fields: list[str]
) -> dict[str, Any]:
    """Reject incomplete bodies and drop fields outside the allow-list."""

    if not isinstance(body, dict):
        raise ValidationError("Expected JSON body")
    missing = [field for field in required_fields if body.get(field) is None]
    if missing:
        raise ValidationError(
            f"Missing required field(s): {', '.join(missing)}", details={"missing": missing}
        )
    return {field: body[field] for field in allowed_fields if field in body}


def create_app(pipeline: Pipeline | None = None, settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application.

    When ``pipeline`` is omitted it is built on startup from the YAML file named
    by :attr:`Settings.pipeline_config` and closed on shutdown.
    """

    settings = settings or get_settings()
    config = pipeline.config if pipeline is not None else load_pipeline_config(settings.pipeline_config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = app.state.pipeline is None
        if owned:
            app.state.pipeline = build_pipeline(config)
        try:
            yield
        finally:
            if owned:
                await app.state.pipeline.aclose()

    app = FastAPI(title="Case Triage", lifespan=lifespan)
    app.add_middleware(RequestIdMiddleware)
    app.state.settings = settings
    app.state.pipeline = pipeline
    app.state.inbound_address = config.addresses.inbound

    @app.exception_handler(ValidationError)
    async def handle_validation(_: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content=error_response(exc))

    @app.exception_handler(ApplicationError)
    async def handle_application_error(_: Request, exc: ApplicationError) -> JSONResponse:
        logger.warning("ingress.failed", error=str(exc), error_type=exc.__class__.__name__)
        return JSONResponse(status_code=500, content=error_response(exc))

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str]:
        return {"status": "UP"}

    @app.post(config.http.route, response_model=None)
    async def submit_failure(request: Request) -> Any:
        active: Pipeline = request.app.state.pipeline
        channel = request.app.state.inbound_address
        try:
            body = await request.json()
        except ValueError as exc:
            raise ValidationError("Expected JSON body") from exc

        event = sanitize_event(
            body,
            required_fields=config.schema_.required_fields,
            allowed_fields=config.schema_.allowed_fields,
        )

        logger.info("ingress.received", channel=channel, reason=event.get("reason"))
        timeout_ms = config.http.request_timeout_ms
        try:
            async with asyncio.timeout(timeout_ms / 1000):
                return await active.submit(event)
        except TimeoutError:
            message = f"Request timed out after {timeout_ms} ms"
            logger.warning("ingress.timeout", channel=channel, timeout_ms=timeout_ms)
            return JSONResponse(status_code=504, content=error_response(Exception(message)))

    return app


__all__ = ["create_app", "sanitize_event"]
