from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.rate_limit import enforce_api_rate_limit, enforce_injection_rate_limit
from app.db.connection import get_db
from app.schemas.inventory import (
    InsulinKind,
    InventoryAlert,
    InventoryCreate,
    InventoryRead,
    InventoryStats,
    InventoryStatus,
    InventoryUpdate,
    TemperatureExposureCreate,
    TemperatureExposureRead,
    UsageRate,
)
from app.services.inventory_service import InventoryService
from app.utils.validators import collapse_whitespace, normalize_user_filter

router = APIRouter(prefix="/inventory", tags=["Inventory"])


def get_inventory_service(db: Session = Depends(get_db)) -> InventoryService:
    return InventoryService(db)


@router.post(
    "",
    response_model=InventoryRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_injection_rate_limit)],
)
def create_item(
    payload: InventoryCreate,
    service: InventoryService = Depends(get_inventory_service),
) -> InventoryRead:
    """Add insulin stock. The expiration date must be in the future."""
    return InventoryRead.model_validate(service.create(payload))


@router.get(
    "",
    response_model=list[InventoryRead],
    dependencies=[Depends(enforce_api_rate_limit)],
)
def list_items(
    user_name: str | None = Query(None),
    status: InventoryStatus | None = Query(None),
    insulin_type: InsulinKind | None = Query(None),
    expiring_within_days: int | None = Query(
        None, ge=0, description="Only active items expiring within this many days."
    ),
    service: InventoryService = Depends(get_inventory_service),
) -> list[InventoryRead]:
    items = service.list(
        user_name=normalize_user_filter(user_name),
        status=status,
        insulin_type=insulin_type.value if insulin_type else None,
        expiring_within_days=expiring_within_days,
    )
    return [InventoryRead.model_validate(item) for item in items]


@router.get(
    "/stats",
    response_model=InventoryStats,
    dependencies=[Depends(enforce_api_rate_limit)],
)
def inventory_stats(
    user_name: str | None = Query(None),
    service: InventoryService = Depends(get_inventory_service),
) -> InventoryStats:
    return service.stats(user_name=normalize_user_filter(user_name))


@router.get(
    "/alerts",
    response_model=list[InventoryAlert],
    dependencies=[Depends(enforce_api_rate_limit)],
)
def inventory_alerts(
    user_name: str = Query(..., pattern=r"\S"),
    service: InventoryService = Depends(get_inventory_service),
) -> list[InventoryAlert]:
    """Expiry, open-too-long and storage alerts for a user's active stock."""
    return service.alerts(user_name=collapse_whitespace(user_name))


@router.get(
    "/{item_id}",
    response_model=InventoryRead,
    dependencies=[Depends(enforce_api_rate_limit)],
)
def get_item(
    item_id: int,
    service: InventoryService = Depends(get_inventory_service),
) -> InventoryRead:
    return InventoryRead.model_validate(service.get(item_id))


@router.patch(
    "/{item_id}",
    response_model=InventoryRead,
    dependencies=[Depends(enforce_injection_rate_limit)],
)
def update_item(
    item_id: int,
    payload: InventoryUpdate,
    service: InventoryService = Depends(get_inventory_service),
) -> InventoryRead:
    return InventoryRead.model_validate(service.update(item_id, payload))


@router.get(
    "/{item_id}/usage",
    response_model=UsageRate,
    dependencies=[Depends(enforce_api_rate_limit)],
)
def usage_rate(
    item_id: int,
    service: InventoryService = Depends(get_inventory_service),
) -> UsageRate:
    """Average daily use from linked injections and projected run-out date."""
    return service.usage_rate(item_id)


@router.post(
    "/{item_id}/exposures",
    response_model=TemperatureExposureRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_injection_rate_limit)],
)
def log_exposure(
    item_id: int,
    payload: TemperatureExposureCreate,
    service: InventoryService = Depends(get_inventory_service),
) -> TemperatureExposureRead:
    return TemperatureExposureRead.model_validate(
        service.log_temperature_exposure(item_id, payload)
    )


@router.get(
    "/{item_id}/exposures",
    response_model=list[TemperatureExposureRead],
    dependencies=[Depends(enforce_api_rate_limit)],
)
def list_exposures(
    item_id: int,
    service: InventoryService = Depends(get_inventory_service),
) -> list[TemperatureExposureRead]:
    return [
        TemperatureExposureRead.model_validate(e)
        for e in service.list_temperature_exposures(item_id)
    ]
