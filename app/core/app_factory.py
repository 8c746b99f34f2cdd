"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers,
database) to improve testability and separation of concerns compared to a
monolithic main.
"""

from __future__ import annotations

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import (
    export_router,
    health_router,
    injections_router,
    inventory_router,
    stats_router,
)
from app.core.auth import verify_api_key
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware, security_headers_middleware
from app.core.openapi import apply_openapi_customizations
from app.db.connection import init_database


def _cors_origins(value: str) -> list[str]:
    origins = [origin.strip() for origin in value.split(",") if origin.strip()]
    return origins or ["*"]


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with database, middleware, handlers, routers
        and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)
    init_database(settings.db)

    app = FastAPI(
        title="Injection Tracker API",
        description=(
            "Log twice-daily insulin injections, review history and compliance, "
            "analyze timing and glucose patterns, track insulin stock and export "
            "reports. Optional X-API-Key authentication, per-client rate limits "
            "and structured logs."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    # Middleware (last added runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(settings.app.cors_origins),
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["*"],
        expose_headers=[settings.log.request_id_header, "Retry-After", "X-RateLimit-Remaining"],
    )
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    protected = [Depends(verify_api_key)]
    for router in (injections_router, stats_router, inventory_router, export_router):
        app.include_router(router, prefix="/v1", dependencies=protected)
    app.include_router(health_router)

    # OpenAPI customizations (security scheme, tags, exemptions)
    apply_openapi_customizations(app)

    return app
