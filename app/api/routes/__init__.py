from __future__ import annotations

from app.api.routes.export import router as export_router
from app.api.routes.health import router as health_router
from app.api.routes.injections import router as injections_router
from app.api.routes.inventory import router as inventory_router
from app.api.routes.stats import router as stats_router

__all__ = [
    "export_router",
    "health_router",
    "injections_router",
    "inventory_router",
    "stats_router",
]
