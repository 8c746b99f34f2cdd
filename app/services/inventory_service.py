"""Insulin inventory: stock on hand, expiry tracking and storage exposures."""

from __future__ import annotations

import logging
import math
from collections import Counter
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy.orm import Session

from app.core.errors import NotFoundAppError, ValidationAppError
from app.db.models import InsulinInventory, TemperatureExposure
from app.repositories.injection_repository import InjectionRepository
from app.repositories.inventory_repository import InventoryRepository
from app.schemas.inventory import (
    InventoryAlert,
    InventoryCreate,
    InventoryStats,
    InventoryStatus,
    InventoryUpdate,
    Severity,
    TemperatureExposureCreate,
    UsageRate,
)
from app.utils.dates import ensure_aware, utcnow

logger = logging.getLogger(__name__)

EXPIRING_SOON_DAYS = 7
EXPIRING_LATER_DAYS = 30
MAX_OPEN_DAYS = 28

_DATETIME_FIELDS = (
    "purchase_date",
    "expiration_date",
    "opened_date",
    "started_using",
    "finished_using",
    "exposure_date",
)


def _aware_values(values: dict) -> dict:
    """Attach the local timezone to naive datetimes and unwrap enums."""
    cleaned = {}
    for key, value in values.items():
        if key in _DATETIME_FIELDS and isinstance(value, datetime):
            value = ensure_aware(value)
        elif isinstance(value, Enum):
            value = value.value
        cleaned[key] = value
    return cleaned


def _days_until(moment: datetime, now: datetime) -> int:
    return math.ceil((moment - now).total_seconds() / 86400)


def compute_alerts(
    items: list[InsulinInventory],
    *,
    now: datetime,
) -> list[InventoryAlert]:
    """Alerts for active items: expiry, opened too long, bad storage.

    Args:
        items: Inventory items, typically one user's active stock.
        now: Reference instant.

    Returns:
        Alerts in item order; an item may raise several.
    """
    alerts: list[InventoryAlert] = []
    for item in items:
        if item.status != InventoryStatus.ACTIVE.value:
            continue

        label = item.brand or item.insulin_type
        days_left = _days_until(item.expiration_date, now)
        if item.expiration_date <= now:
            alerts.append(
                InventoryAlert(
                    type="expired",
                    message=f"{label} expired on {item.expiration_date.date().isoformat()}",
                    severity=Severity.HIGH,
                    inventory_id=item.id,
                )
            )
        elif days_left <= EXPIRING_LATER_DAYS:
            alerts.append(
                InventoryAlert(
                    type="expiring_soon",
                    message=f"{label} expires in {days_left} day{'s' if days_left != 1 else ''}",
                    severity=Severity.HIGH if days_left <= EXPIRING_SOON_DAYS else Severity.MEDIUM,
                    inventory_id=item.id,
                )
            )

        if item.opened_date is not None:
            days_open = (now - item.opened_date).days
            if days_open > MAX_OPEN_DAYS:
                alerts.append(
                    InventoryAlert(
                        type="opened_too_long",
                        message=f"{label} has been open for {days_open} days (limit {MAX_OPEN_DAYS})",
                        severity=Severity.MEDIUM,
                        inventory_id=item.id,
                    )
                )

        severe = [e for e in item.temperature_exposures if e.severity == Severity.HIGH.value]
        if severe:
            alerts.append(
                InventoryAlert(
                    type="temperature_exposure",
                    message=f"{label} had {len(severe)} severe temperature exposure(s); check before use",
                    severity=Severity.HIGH,
                    inventory_id=item.id,
                )
            )
    return alerts


def compute_stats(items: list[InsulinInventory], *, now: datetime) -> InventoryStats:
    active = [item for item in items if item.status == InventoryStatus.ACTIVE.value]
    soon = now + timedelta(days=EXPIRING_SOON_DAYS)
    later = now + timedelta(days=EXPIRING_LATER_DAYS)
    return InventoryStats(
        total_active=len(active),
        expired=sum(
            1
            for item in items
            if item.status == InventoryStatus.EXPIRED.value
            or (item.status == InventoryStatus.ACTIVE.value and item.expiration_date <= now)
        ),
        expiring_within_7_days=sum(1 for item in active if now < item.expiration_date <= soon),
        expiring_within_30_days=sum(1 for item in active if now < item.expiration_date <= later),
        by_type=dict(Counter(item.insulin_type for item in active)),
        by_status=dict(Counter(item.status for item in items)),
    )


class InventoryService:
    """Stock records and derived alerts for insulin supplies."""

    def __init__(self, session: Session) -> None:
        self.repository = InventoryRepository(session)
        self.injections = InjectionRepository(session)

    def create(self, payload: InventoryCreate, *, now: datetime | None = None) -> InsulinInventory:
        """Add a vial or pen pack.

        Raises:
            ValidationAppError: If the expiration date is not in the future.
        """
        values = _aware_values(payload.model_dump())
        if values["expiration_date"] <= (now or utcnow()):
            raise ValidationAppError(
                code="invalid_expiration_date",
                message="Expiration date must be in the future",
                details={"field": "expiration_date"},
            )
        if values.get("volume_ml"):
            values["current_units_remaining"] = (
                values["volume_ml"] * values["units_per_ml"] * values["quantity"]
            )

        item = self.repository.add(InsulinInventory(**values))
        logger.info(
            "inventory.created",
            extra={"inventory_id": item.id, "insulin_type": item.insulin_type},
        )
        return item

    def list(
        self,
        *,
        user_name: str | None = None,
        status: InventoryStatus | None = None,
        insulin_type: str | None = None,
        expiring_within_days: int | None = None,
        now: datetime | None = None,
    ) -> list[InsulinInventory]:
        """Inventory items, newest first.

        ``expiring_within_days`` only considers active items.
        """
        expiring_before = None
        if expiring_within_days is not None:
            expiring_before = (now or utcnow()) + timedelta(days=expiring_within_days)
            status = InventoryStatus.ACTIVE
        return self.repository.find(
            user_name=user_name,
            status=status.value if status else None,
            insulin_type=insulin_type,
            expiring_before=expiring_before,
        )

    def get(self, item_id: int) -> InsulinInventory:
        item = self.repository.get(item_id)
        if item is None:
            raise NotFoundAppError(
                code="inventory_not_found",
                message=f"Inventory item {item_id} not found",
                details={"resource": "inventory", "identifier": item_id},
            )
        return item

    def update(self, item_id: int, payload: InventoryUpdate) -> InsulinInventory:
        item = self.get(item_id)
        changes = _aware_values(payload.model_dump(exclude_unset=True))
        if "status" in changes and changes["status"] is None:
            del changes["status"]
        for field, value in changes.items():
            setattr(item, field, value)
        item = self.repository.save(item)
        logger.info(
            "inventory.updated",
            extra={"inventory_id": item.id, "fields": sorted(changes)},
        )
        return item

    def log_temperature_exposure(
        self,
        item_id: int,
        payload: TemperatureExposureCreate,
    ) -> TemperatureExposure:
        self.get(item_id)
        values = _aware_values(payload.model_dump())
        exposure = self.repository.add_exposure(TemperatureExposure(inventory_id=item_id, **values))
        logger.info(
            "inventory.exposure_logged",
            extra={
                "inventory_id": item_id,
                "exposure_type": exposure.exposure_type,
                "severity": exposure.severity,
            },
        )
        return exposure

    def list_temperature_exposures(self, item_id: int) -> list[TemperatureExposure]:
        self.get(item_id)
        return self.repository.exposures(item_id)

    def stats(self, *, user_name: str | None = None, now: datetime | None = None) -> InventoryStats:
        return compute_stats(self.repository.find(user_name=user_name), now=now or utcnow())

    def alerts(self, *, user_name: str, now: datetime | None = None) -> list[InventoryAlert]:
        items = self.repository.find(user_name=user_name, status=InventoryStatus.ACTIVE.value)
        return compute_alerts(items, now=now or utcnow())

    def usage_rate(self, item_id: int, *, now: datetime | None = None) -> UsageRate:
        """Average daily use since the item was started, from linked doses.

        Items never started (or with no dosage data) report a zero rate.
        """
        item = self.get(item_id)
        now = now or utcnow()

        average = 0.0
        if item.started_using is not None:
            used = sum(
                injection.dosage_units or 0
                for injection in self.injections.for_inventory(item.id)
                if injection.injection_time >= item.started_using
            )
            elapsed_days = max(1, math.ceil((now - item.started_using).total_seconds() / 86400))
            average = round(used / elapsed_days, 2)

        remaining = item.current_units_remaining
        days_of_supply = 0
        projected = None
        if average > 0 and remaining:
            days_of_supply = math.floor(remaining / average)
            projected = now + timedelta(days=days_of_supply)

        return UsageRate(
            inventory_id=item.id,
            average_units_per_day=average,
            days_of_supply_remaining=days_of_supply,
            projected_empty_date=projected,
        )
