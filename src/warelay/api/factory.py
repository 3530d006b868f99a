"""FastAPI application factory.

The app owns its collaborators (settings, session gate, messaging client,
dispatch policy) on app.state; routes reach them through FastAPI
dependencies, so tests build isolated apps with fake clients.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from warelay.config import Settings
from warelay.domain.dispatch import DispatchPolicy
from warelay.errors import AuthError
from warelay.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from warelay.observability.logging import get_logger
from warelay.observability.redaction import safe_log_context
from warelay.session.gate import SessionGate
from warelay.whatsapp.client import MessagingClient
from warelay.whatsapp.events import bootstrap_session, watch_session

from .body_limit import BodySizeLimitMiddleware
from .responses import error_response
from .routes import messages, status, webhooks

logger = get_logger(__name__)


def dispatch_policy_from(settings: Settings) -> DispatchPolicy:
    return DispatchPolicy(
        delay_seconds=settings.send_delay_ms / 1000,
        concurrency=settings.dispatch_concurrency,
    )


def _install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> Response:
        return error_response(exc.status_code, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
        logger.warning(
            "request validation failed",
            extra={"extra_fields": safe_log_context(path=request.url.path, errors=len(exc.errors()))},
        )
        return error_response(400, "Invalid request body.")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> Response:
        if exc.status_code == 404:
            logger.warning(
                "route not found",
                extra={"extra_fields": {"method": request.method, "path": request.url.path}},
            )
            return error_response(404, "Route not found (404).")
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> Response:
        logger.exception(
            "unhandled error",
            extra={"extra_fields": {"method": request.method, "path": request.url.path}},
        )
        return error_response(500, "Internal server error.")


def create_app(
    settings: Settings,
    client: MessagingClient,
    *,
    gate: SessionGate | None = None,
    watch_session_state: bool = True,
) -> FastAPI:
    """Create the relay API.

    Args:
        settings: Validated settings.
        client: Messaging client used for sends and session probes.
        gate: Session gate; a fresh NOT_READY gate when omitted.
        watch_session_state: Probe the client on startup and keep polling
            its connection state (settings.session_poll_interval).

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        watcher: asyncio.Task | None = None
        if watch_session_state:
            await bootstrap_session(app.state.gate, client)
            if settings.session_poll_interval > 0:
                watcher = asyncio.create_task(
                    watch_session(app.state.gate, client, settings.session_poll_interval)
                )
        try:
            yield
        finally:
            if watcher is not None:
                watcher.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await watcher

    app = FastAPI(
        title="warelay",
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.client = client
    app.state.gate = gate or SessionGate()
    app.state.dispatch_policy = dispatch_policy_from(settings)

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)

    @app.middleware("http")
    async def request_log_middleware(request: Request, call_next) -> Response:
        logger.info(
            "api request",
            extra={"extra_fields": {"method": request.method, "path": request.url.path}},
        )
        return await call_next(request)

    # Registered last so it wraps the others
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
        except Exception:
            # 500s carry the correlation id too
            logger.exception(
                "unhandled error",
                extra={"extra_fields": {"method": request.method, "path": request.url.path}},
            )
            response = error_response(500, "Internal server error.")
        finally:
            reset_correlation_id(token)
        response.headers[CORRELATION_ID_HEADER] = cid
        return response

    _install_exception_handlers(app)

    app.include_router(status.router)
    app.include_router(messages.router)
    app.include_router(webhooks.router)

    return app
