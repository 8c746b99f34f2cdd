"""Persistence for insulin inventory and temperature exposures."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select

from app.db.models import InsulinInventory, TemperatureExposure
from app.repositories.base import SessionRepository


class InventoryRepository(SessionRepository):
    """Queries and writes against ``insulin_inventory`` and its exposures."""

    def add(self, item: InsulinInventory) -> InsulinInventory:
        with self._guard("create inventory record"):
            self.session.add(item)
            self.session.commit()
            self.session.refresh(item)
        return item

    def save(self, item: InsulinInventory) -> InsulinInventory:
        with self._guard("update inventory item"):
            self.session.commit()
            self.session.refresh(item)
        return item

    def get(self, item_id: int) -> InsulinInventory | None:
        with self._guard("fetch inventory item"):
            return self.session.get(InsulinInventory, item_id)

    def find(
        self,
        *,
        user_name: str | None = None,
        status: str | None = None,
        insulin_type: str | None = None,
        expiring_before: datetime | None = None,
    ) -> list[InsulinInventory]:
        """Inventory items matching all given filters, newest first."""
        query = select(InsulinInventory)
        if user_name:
            query = query.where(InsulinInventory.user_name == user_name)
        if status:
            query = query.where(InsulinInventory.status == status)
        if insulin_type:
            query = query.where(InsulinInventory.insulin_type == insulin_type)
        if expiring_before is not None:
            query = query.where(InsulinInventory.expiration_date <= expiring_before)

        query = query.order_by(InsulinInventory.created_at.desc(), InsulinInventory.id.desc())
        with self._guard("fetch inventory items"):
            return list(self.session.scalars(query))

    def add_exposure(self, exposure: TemperatureExposure) -> TemperatureExposure:
        with self._guard("log temperature exposure"):
            self.session.add(exposure)
            self.session.commit()
            self.session.refresh(exposure)
        return exposure

    def exposures(self, inventory_id: int) -> list[TemperatureExposure]:
        query = (
            select(TemperatureExposure)
            .where(TemperatureExposure.inventory_id == inventory_id)
            .order_by(TemperatureExposure.exposure_date.desc(), TemperatureExposure.id.desc())
        )
        with self._guard("fetch temperature exposures"):
            return list(self.session.scalars(query))
