from __future__ import annotations

from fastapi import APIRouter

from app.db.connection import check_database

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Returns the API status and whether the database answers a trivial query.
    Used by load balancers and monitoring systems to determine service health.

    Returns:
        dict: ``status`` is always "ok"; ``database`` is "ok" or "unavailable".
    """

    return {"status": "ok", "database": "ok" if check_database() else "unavailable"}
