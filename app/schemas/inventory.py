"""Pydantic schemas for insulin inventory and storage exposures."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.utils.validators import normalize_notes, normalize_user_name


class InsulinKind(str, Enum):
    RAPID = "rapid"
    LONG_ACTING = "long-acting"
    INTERMEDIATE = "intermediate"
    MIXED = "mixed"
    OTHER = "other"


class InventoryStatus(str, Enum):
    ACTIVE = "active"
    FINISHED = "finished"
    EXPIRED = "expired"
    DISCARDED = "discarded"


class ExposureType(str, Enum):
    HEAT = "heat"
    FREEZE = "freeze"
    ROOM_TEMP = "room_temp"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class InventoryCreate(BaseModel):
    user_name: str
    insulin_type: InsulinKind
    brand: str | None = Field(None, max_length=100)
    concentration: str | None = Field(None, max_length=16, description="e.g. U100, U200.")
    quantity: int = Field(1, ge=1, description="Number of vials or pens.")
    volume_ml: float | None = Field(None, gt=0, description="Volume per vial/pen in ml.")
    units_per_ml: int = Field(100, gt=0)
    purchase_date: datetime | None = None
    expiration_date: datetime
    storage_location: str | None = Field(None, max_length=100)
    notes: str | None = None

    @field_validator("user_name")
    @classmethod
    def _clean_user_name(cls, value: str) -> str:
        return normalize_user_name(value)

    @field_validator("brand")
    @classmethod
    def _clean_brand(cls, value: str | None) -> str | None:
        return value.strip() or None if value is not None else None

    @field_validator("notes")
    @classmethod
    def _clean_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class InventoryUpdate(BaseModel):
    status: InventoryStatus | None = None
    opened_date: datetime | None = None
    started_using: datetime | None = None
    finished_using: datetime | None = None
    current_units_remaining: float | None = Field(None, ge=0)
    storage_location: str | None = Field(None, max_length=100)
    notes: str | None = None

    @field_validator("notes")
    @classmethod
    def _clean_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class InventoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_name: str
    insulin_type: str
    brand: str | None = None
    concentration: str | None = None
    quantity: int
    volume_ml: float | None = None
    units_per_ml: int
    purchase_date: datetime | None = None
    expiration_date: datetime
    opened_date: datetime | None = None
    started_using: datetime | None = None
    finished_using: datetime | None = None
    current_units_remaining: float | None = None
    storage_location: str | None = None
    status: str
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class TemperatureExposureCreate(BaseModel):
    exposure_type: ExposureType
    temperature: float | None = Field(None, description="Temperature in Celsius, if known.")
    duration: int | None = Field(None, ge=0, description="Duration in minutes.")
    exposure_date: datetime
    severity: Severity | None = None
    notes: str | None = None

    @field_validator("notes")
    @classmethod
    def _clean_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class TemperatureExposureRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    inventory_id: int
    exposure_type: str
    temperature: float | None = None
    duration: int | None = None
    exposure_date: datetime
    severity: str | None = None
    notes: str | None = None
    created_at: datetime


class InventoryStats(BaseModel):
    total_active: int
    expired: int
    expiring_within_7_days: int
    expiring_within_30_days: int
    by_type: dict[str, int]
    by_status: dict[str, int]


class InventoryAlert(BaseModel):
    type: str = Field(
        ..., description="expired, expiring_soon, opened_too_long or temperature_exposure."
    )
    message: str
    severity: Severity
    inventory_id: int


class UsageRate(BaseModel):
    inventory_id: int
    average_units_per_day: float
    days_of_supply_remaining: int
    projected_empty_date: datetime | None = None
