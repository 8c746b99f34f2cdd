"""SQLAlchemy ORM models.

All datetimes are stored as naive UTC and handed back as timezone-aware UTC
values, so SQLite and PostgreSQL behave the same.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """DateTime column that always round-trips aware UTC datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime passed to a UTC column")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: datetime | None, dialect: Any) -> datetime | None:
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class Injection(TimestampMixin, Base):
    """A single logged dose."""

    __tablename__ = "injections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_name: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    injection_time: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    injection_type: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    notes: Mapped[str | None] = mapped_column(Text)

    insulin_type: Mapped[str | None] = mapped_column(String(32), index=True)
    insulin_brand: Mapped[str | None] = mapped_column(String(100))
    dosage_units: Mapped[float | None] = mapped_column(Float)

    blood_glucose_before: Mapped[float | None] = mapped_column(Float)
    blood_glucose_after: Mapped[float | None] = mapped_column(Float)
    blood_glucose_unit: Mapped[str] = mapped_column(String(8), default="mg/dL", nullable=False)

    meal_type: Mapped[str | None] = mapped_column(String(16), index=True)
    carbs_grams: Mapped[float | None] = mapped_column(Float)
    injection_site: Mapped[str | None] = mapped_column(String(50))
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    inventory_id: Mapped[int | None] = mapped_column(
        ForeignKey("insulin_inventory.id", ondelete="SET NULL"), index=True
    )

    __table_args__ = (
        Index("idx_injections_user_type_time", "user_name", "injection_type", "injection_time"),
    )

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"Injection(id={self.id}, user_name={self.user_name!r}, "
            f"type={self.injection_type}, time={self.injection_time.isoformat()})"
        )


class InsulinInventory(TimestampMixin, Base):
    """A vial or pen pack on hand."""

    __tablename__ = "insulin_inventory"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_name: Mapped[str] = mapped_column(String(50), nullable=False, index=True)

    insulin_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    brand: Mapped[str | None] = mapped_column(String(100))
    concentration: Mapped[str | None] = mapped_column(String(16))

    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    volume_ml: Mapped[float | None] = mapped_column(Float)
    units_per_ml: Mapped[int] = mapped_column(Integer, default=100, nullable=False)

    purchase_date: Mapped[datetime | None] = mapped_column(UTCDateTime)
    expiration_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    opened_date: Mapped[datetime | None] = mapped_column(UTCDateTime)
    started_using: Mapped[datetime | None] = mapped_column(UTCDateTime)
    finished_using: Mapped[datetime | None] = mapped_column(UTCDateTime)
    current_units_remaining: Mapped[float | None] = mapped_column(Float)

    storage_location: Mapped[str | None] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(16), default="active", nullable=False, index=True)
    notes: Mapped[str | None] = mapped_column(Text)

    temperature_exposures: Mapped[list["TemperatureExposure"]] = relationship(
        back_populates="inventory",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="desc(TemperatureExposure.exposure_date)",
    )


class TemperatureExposure(Base):
    """A storage temperature excursion for an inventory item."""

    __tablename__ = "temperature_exposures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    inventory_id: Mapped[int] = mapped_column(
        ForeignKey("insulin_inventory.id", ondelete="CASCADE"), nullable=False, index=True
    )
    exposure_type: Mapped[str] = mapped_column(String(16), nullable=False)
    temperature: Mapped[float | None] = mapped_column(Float)
    duration: Mapped[int | None] = mapped_column(Integer)
    exposure_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    severity: Mapped[str | None] = mapped_column(String(8))
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    inventory: Mapped[InsulinInventory] = relationship(back_populates="temperature_exposures")
