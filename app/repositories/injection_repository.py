"""Persistence for injection records."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import exists, func, select
from sqlalchemy.sql import Select

from app.db.models import Injection
from app.repositories.base import SessionRepository


class InjectionRepository(SessionRepository):
    """Queries and writes against the ``injections`` table."""

    def add(self, injection: Injection) -> Injection:
        with self._guard("create injection record"):
            self.session.add(injection)
            self.session.commit()
            self.session.refresh(injection)
        return injection

    def save(self, injection: Injection) -> Injection:
        with self._guard("update injection record"):
            self.session.commit()
            self.session.refresh(injection)
        return injection

    def delete(self, injection: Injection) -> None:
        with self._guard("delete injection record"):
            self.session.delete(injection)
            self.session.commit()

    def get(self, injection_id: int) -> Injection | None:
        with self._guard("fetch injection"):
            return self.session.get(Injection, injection_id)

    @staticmethod
    def _filtered(
        query: Select,
        *,
        user_name: str | None = None,
        injection_type: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Select:
        if user_name:
            query = query.where(Injection.user_name == user_name)
        if injection_type:
            query = query.where(Injection.injection_type == injection_type)
        if start is not None:
            query = query.where(Injection.injection_time >= start)
        if end is not None:
            query = query.where(Injection.injection_time < end)
        return query

    def find(
        self,
        *,
        user_name: str | None = None,
        injection_type: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> tuple[list[Injection], int]:
        """Return a page of injections (newest first) and the total match count."""
        filters = dict(user_name=user_name, injection_type=injection_type, start=start, end=end)

        with self._guard("fetch injections"):
            total = self.session.scalar(
                self._filtered(select(func.count(Injection.id)), **filters)
            ) or 0

            query = self._filtered(select(Injection), **filters).order_by(
                Injection.injection_time.desc(), Injection.id.desc()
            )
            if offset:
                query = query.offset(offset)
            if limit is not None:
                query = query.limit(limit)

            return list(self.session.scalars(query)), total

    def in_range(
        self,
        start: datetime,
        end: datetime,
        *,
        user_name: str | None = None,
    ) -> list[Injection]:
        """All injections in [start, end), oldest first."""
        query = self._filtered(
            select(Injection), user_name=user_name, start=start, end=end
        ).order_by(Injection.injection_time.asc(), Injection.id.asc())

        with self._guard("fetch injections"):
            return list(self.session.scalars(query))

    def exists_for_day(
        self,
        *,
        user_name: str,
        injection_type: str,
        start: datetime,
        end: datetime,
        exclude_id: int | None = None,
    ) -> bool:
        """True if the user already logged this dose type within [start, end)."""
        condition = (
            (Injection.user_name == user_name)
            & (Injection.injection_type == injection_type)
            & (Injection.injection_time >= start)
            & (Injection.injection_time < end)
        )
        if exclude_id is not None:
            condition = condition & (Injection.id != exclude_id)

        with self._guard("check for duplicate injection"):
            return bool(self.session.scalar(select(exists().where(condition))))

    def for_inventory(self, inventory_id: int) -> list[Injection]:
        query = (
            select(Injection)
            .where(Injection.inventory_id == inventory_id)
            .order_by(Injection.injection_time.asc())
        )
        with self._guard("fetch injections for inventory item"):
            return list(self.session.scalars(query))
