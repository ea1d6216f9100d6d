"""
esaf_lifecycle.api.app

FastAPI app factory for the ESAF lifecycle services.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Mount the protocol endpoints of every hosted service.
- Own the shared httpx clients and the single-owner service objects on app.state.
- Map protocol errors to HTTP status codes on the outer REST surface.
"""

from __future__ import annotations

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from esaf_lifecycle import __version__
from esaf_lifecycle.api.routers.approvers import router as approvers_router
from esaf_lifecycle.api.routers.health import router as health_router
from esaf_lifecycle.api.routers.requests import router as requests_router
from esaf_lifecycle.errors import ProtocolError
from esaf_lifecycle.observability.logging import configure_logging, get_logger
from esaf_lifecycle.observability.middleware import RequestContextMiddleware
from esaf_lifecycle.protocol.client import ServiceDirectory
from esaf_lifecycle.protocol.server import build_service_router
from esaf_lifecycle.services.registry import build_services
from esaf_lifecycle.settings import Settings

log = get_logger(__name__)


def create_app(*, settings: Settings) -> FastAPI:
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    app = FastAPI(
        title="ESAF Lifecycle Services",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
    )

    app.add_middleware(RequestContextMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(requests_router)
    app.include_router(approvers_router)
    for name in settings.hosted_services:
        app.include_router(build_service_router(name))

    # No timeout: cross-service calls block until they complete or the transport fails.
    if settings.loopback_transport:
        http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), timeout=None)
    else:
        http = httpx.AsyncClient(timeout=None)
    narrative_http = httpx.AsyncClient(timeout=None) if settings.narrative_service_url else None

    directory = ServiceDirectory(settings=settings, http=http)
    app.state.settings = settings
    app.state.directory = directory
    app.state.services = build_services(
        settings=settings, directory=directory, narrative_http=narrative_http
    )

    @app.exception_handler(ProtocolError)
    async def _protocol_error(_: Request, exc: ProtocolError) -> JSONResponse:
        return JSONResponse(status_code=exc.http_status, content={"error": exc.to_payload()})

    @app.on_event("startup")
    async def _startup() -> None:
        log.info(
            "startup",
            env=settings.env,
            hosted_services=list(settings.hosted_services),
            loopback=settings.loopback_transport,
        )

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await http.aclose()
        if narrative_http is not None:
            await narrative_http.aclose()
        log.info("shutdown")

    return app


# --- Module Notes -----------------------------------------------------------
# Service objects are created with the app (not on startup) so their in-memory state
# exists for the whole app lifetime, including under ASGITransport in tests.
