from __future__ import annotations

"""Application factory for the guestbook API.

Centralizes app construction (state, middleware, handlers, routers) so tests
can build isolated applications with their own store, clock and limiter.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from guestbook.adapters.rate_limit.base import AbstractRateLimiter
from guestbook.adapters.storage.base import AbstractVisitorStore
from guestbook.adapters.storage.sqlite import SQLiteVisitorStore
from guestbook.api.routes import build_admin_router, health_router, visitors_router
from guestbook.api.routes.admin import ADMIN_PREFIX
from guestbook.core.auth import AdminEnabled, resolve_admin_gate
from guestbook.core.config import Settings, settings as default_settings
from guestbook.core.exception_handlers import setup_exception_handlers
from guestbook.core.logging import configure_logging
from guestbook.core.middleware import request_id_middleware
from guestbook.core.openapi import apply_openapi_customizations
from guestbook.core.rate_limit import build_rate_limiter
from guestbook.core.time_source import SystemTimeSource, TimeSource

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    app.state.store.close()
    logger.info("app.shutdown")


def create_app(
    app_settings: Settings | None = None,
    *,
    store: AbstractVisitorStore | None = None,
    time_source: TimeSource | None = None,
    rate_limiter: AbstractRateLimiter | None = None,
    setup_logging: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    The visitor table is created here rather than in the lifespan, so the app
    is usable even when the server (or TestClient) never runs startup events.

    Args:
        app_settings: Settings to use; defaults to the global settings.
        store: Visitor store; defaults to SQLite at ``settings.db.path``.
        time_source: Clock for created_at; defaults to the system clock.
        rate_limiter: Limiter for POST /register; built from settings if omitted.
        setup_logging: Install the JSON logging handler on the root logger.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    if setup_logging:
        configure_logging(cfg.log)

    if store is None:
        store = SQLiteVisitorStore(cfg.db.path, echo=cfg.db.echo)
    store.initialize()

    app = FastAPI(
        title="Guestbook API",
        description=(
            "Visitors register a nickname with optional group, email and extra "
            "note. Anyone can list nicks and groups; the admin (bearer token) "
            "can see full entries and delete them."
        ),
        version="0.1.0",
        lifespan=_lifespan,
    )

    app.state.settings = cfg
    app.state.store = store
    app.state.time_source = time_source or SystemTimeSource()
    app.state.rate_limiter = rate_limiter or build_rate_limiter(cfg.app)

    # Middleware
    app.middleware("http")(request_id_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[cfg.app.cors_origin],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(visitors_router)
    app.include_router(health_router)

    gate = resolve_admin_gate(cfg.app.admin_token)
    app.state.admin_gate = gate
    if isinstance(gate, AdminEnabled):
        app.include_router(build_admin_router(gate), prefix=ADMIN_PREFIX)
    else:
        logger.warning(
            "admin.disabled",
            extra={"reason": "admin_token_not_configured"},
        )

    apply_openapi_customizations(app)

    return app
