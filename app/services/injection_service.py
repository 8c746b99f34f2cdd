"""Injection logging: create, browse, correct and remove doses."""

from __future__ import annotations

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any

from sqlalchemy.orm import Session

from app.core.errors import ConflictAppError, NotFoundAppError
from app.db.models import Injection, InsulinInventory
from app.repositories.injection_repository import InjectionRepository
from app.schemas.injection import (
    InjectionCreate,
    InjectionPage,
    InjectionRead,
    InjectionType,
    InjectionUpdate,
    TodayStatus,
)
from app.services.stats_service import invalidate_stats_cache
from app.utils.dates import day_bounds, ensure_aware, local_date, today
from app.utils.pagination import normalize_pagination

logger = logging.getLogger(__name__)


def _column_values(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value.value if isinstance(value, Enum) else value for key, value in values.items()}


class InjectionService:
    """Business rules for injection records.

    Owns duplicate-dose detection: one dose of each type per user per local
    calendar day.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.repository = InjectionRepository(session)

    def create(self, payload: InjectionCreate) -> Injection:
        """Log a new injection.

        Raises:
            ConflictAppError: If the same dose was already logged that day.
            NotFoundAppError: If ``inventory_id`` does not exist.
        """
        values = _column_values(payload.model_dump(exclude_none=True))
        values["injection_time"] = ensure_aware(payload.injection_time)
        values["tags"] = payload.tags or []

        self._ensure_not_duplicate(
            user_name=values["user_name"],
            injection_type=values["injection_type"],
            injection_time=values["injection_time"],
        )
        if payload.inventory_id is not None:
            self._ensure_inventory_exists(payload.inventory_id)

        injection = self.repository.add(Injection(**values))
        invalidate_stats_cache()

        logger.info(
            "injection.created",
            extra={
                "injection_id": injection.id,
                "injection_type": injection.injection_type,
                "local_date": local_date(injection.injection_time).isoformat(),
                "has_notes": injection.notes is not None,
            },
        )
        return injection

    def list(
        self,
        *,
        day: date | None = None,
        user_name: str | None = None,
        injection_type: InjectionType | None = None,
        page: int | str | None = None,
        per_page: int | str | None = None,
    ) -> InjectionPage:
        """Return one page of history, newest first."""
        page, per_page = normalize_pagination(page, per_page)
        start, end = day_bounds(day) if day is not None else (None, None)

        injections, total = self.repository.find(
            user_name=user_name,
            injection_type=injection_type.value if injection_type else None,
            start=start,
            end=end,
            offset=(page - 1) * per_page,
            limit=per_page,
        )
        return InjectionPage(
            injections=[InjectionRead.model_validate(item) for item in injections],
            total=total,
            page=page,
            per_page=per_page,
        )

    def get(self, injection_id: int) -> Injection:
        injection = self.repository.get(injection_id)
        if injection is None:
            raise NotFoundAppError(
                code="injection_not_found",
                message=f"Injection {injection_id} not found",
                details={"resource": "injection", "identifier": injection_id},
            )
        return injection

    def update(self, injection_id: int, payload: InjectionUpdate) -> Injection:
        """Apply a partial update; only fields present in the payload change.

        The duplicate check runs against the merged record and ignores the
        record itself.
        """
        injection = self.get(injection_id)
        changes = _column_values(payload.model_dump(exclude_unset=True))

        # Required columns cannot be cleared.
        for field in ("user_name", "injection_time", "injection_type", "blood_glucose_unit"):
            if field in changes and changes[field] is None:
                del changes[field]

        if "injection_time" in changes:
            changes["injection_time"] = ensure_aware(changes["injection_time"])
        if "tags" in changes:
            changes["tags"] = changes["tags"] or []
        if changes.get("inventory_id") is not None:
            self._ensure_inventory_exists(changes["inventory_id"])

        self._ensure_not_duplicate(
            user_name=changes.get("user_name", injection.user_name),
            injection_type=changes.get("injection_type", injection.injection_type),
            injection_time=changes.get("injection_time", injection.injection_time),
            exclude_id=injection.id,
        )

        for field, value in changes.items():
            setattr(injection, field, value)
        injection = self.repository.save(injection)
        invalidate_stats_cache()

        logger.info(
            "injection.updated",
            extra={"injection_id": injection.id, "fields": sorted(changes)},
        )
        return injection

    def delete(self, injection_id: int) -> None:
        injection = self.get(injection_id)
        self.repository.delete(injection)
        invalidate_stats_cache()
        logger.info("injection.deleted", extra={"injection_id": injection_id})

    def today_status(
        self,
        *,
        user_name: str | None = None,
        now: datetime | None = None,
    ) -> TodayStatus:
        """Report which of today's doses have been logged."""
        current = today(now)
        start, end = day_bounds(current)
        injections, _ = self.repository.find(user_name=user_name, start=start, end=end)
        # find() is newest first; the earliest dose of each type is the one shown.
        injections.reverse()

        first: dict[str, Injection] = {}
        for injection in injections:
            first.setdefault(injection.injection_type, injection)

        morning = first.get(InjectionType.MORNING.value)
        evening = first.get(InjectionType.EVENING.value)
        return TodayStatus(
            date=current,
            morning_done=morning is not None,
            evening_done=evening is not None,
            morning_details=InjectionRead.model_validate(morning) if morning else None,
            evening_details=InjectionRead.model_validate(evening) if evening else None,
            all_complete=morning is not None and evening is not None,
            injections=[InjectionRead.model_validate(item) for item in injections],
        )

    def _ensure_not_duplicate(
        self,
        *,
        user_name: str,
        injection_type: str,
        injection_time: datetime,
        exclude_id: int | None = None,
    ) -> None:
        day = local_date(injection_time)
        start, end = day_bounds(day)
        if self.repository.exists_for_day(
            user_name=user_name,
            injection_type=injection_type,
            start=start,
            end=end,
            exclude_id=exclude_id,
        ):
            logger.warning(
                "injection.duplicate",
                extra={"injection_type": injection_type, "local_date": day.isoformat()},
            )
            raise ConflictAppError(
                code="duplicate_injection",
                message=f"{user_name} already logged the {injection_type} injection on {day.isoformat()}",
                details={
                    "user_name": user_name,
                    "injection_type": injection_type,
                    "date": day.isoformat(),
                },
            )

    def _ensure_inventory_exists(self, inventory_id: int) -> None:
        if self.session.get(InsulinInventory, inventory_id) is None:
            raise NotFoundAppError(
                code="inventory_not_found",
                message=f"Inventory item {inventory_id} not found",
                details={"resource": "inventory", "identifier": inventory_id},
            )
