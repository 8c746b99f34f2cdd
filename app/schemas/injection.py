"""Pydantic schemas for injection records."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.utils.validators import normalize_notes, normalize_tags, normalize_user_name


class InjectionType(str, Enum):
    MORNING = "morning"
    EVENING = "evening"


class MealType(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


class GlucoseUnit(str, Enum):
    MG_DL = "mg/dL"
    MMOL_L = "mmol/L"


class _InjectionDetails(BaseModel):
    """Optional dose context shared by create and update payloads."""

    notes: str | None = Field(None, description="Free-text notes (max 500 characters).")
    insulin_type: str | None = Field(
        None, max_length=32, description="Insulin kind, e.g. rapid or long-acting."
    )
    insulin_brand: str | None = Field(None, max_length=100, description="Brand name, e.g. Lantus.")
    dosage_units: float | None = Field(None, gt=0, le=300, description="Units injected.")
    blood_glucose_before: float | None = Field(None, gt=0, description="Reading before the dose.")
    blood_glucose_after: float | None = Field(None, gt=0, description="Reading after the dose.")
    blood_glucose_unit: GlucoseUnit | None = Field(None, description="Unit of the glucose readings.")
    meal_type: MealType | None = Field(None, description="Meal the dose relates to.")
    carbs_grams: float | None = Field(None, ge=0, description="Carbohydrates in grams.")
    injection_site: str | None = Field(
        None, max_length=50, description="Body site used, for rotation tracking."
    )
    tags: list[str] | None = Field(None, description="Context tags such as exercise or sick.")
    inventory_id: int | None = Field(None, description="Inventory item the dose was drawn from.")

    @field_validator("notes")
    @classmethod
    def _clean_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, value: list[str] | None) -> list[str] | None:
        return None if value is None else normalize_tags(value)


class InjectionCreate(_InjectionDetails):
    """Payload for logging a new injection."""

    user_name: str = Field(..., description="Person who gave the injection.")
    injection_time: datetime = Field(
        ...,
        description="When the dose was given (ISO-8601). Naive values use the configured timezone.",
    )
    injection_type: InjectionType = Field(..., description="Scheduled dose: morning or evening.")

    @field_validator("user_name")
    @classmethod
    def _clean_user_name(cls, value: str) -> str:
        return normalize_user_name(value)


class InjectionUpdate(_InjectionDetails):
    """Partial update; only provided fields change."""

    user_name: str | None = None
    injection_time: datetime | None = None
    injection_type: InjectionType | None = None

    @field_validator("user_name")
    @classmethod
    def _clean_user_name(cls, value: str | None) -> str | None:
        return None if value is None else normalize_user_name(value)


class InjectionRead(BaseModel):
    """Injection as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_name: str
    injection_time: datetime
    injection_type: InjectionType
    notes: str | None = None
    insulin_type: str | None = None
    insulin_brand: str | None = None
    dosage_units: float | None = None
    blood_glucose_before: float | None = None
    blood_glucose_after: float | None = None
    blood_glucose_unit: str = "mg/dL"
    meal_type: str | None = None
    carbs_grams: float | None = None
    injection_site: str | None = None
    tags: list[str] = Field(default_factory=list)
    inventory_id: int | None = None
    created_at: datetime
    updated_at: datetime


class InjectionPage(BaseModel):
    """One page of injection history."""

    injections: list[InjectionRead]
    total: int = Field(..., description="Matching records across all pages.")
    page: int
    per_page: int


class TodayStatus(BaseModel):
    """Whether today's scheduled doses have been logged."""

    date: date
    morning_done: bool
    evening_done: bool
    morning_details: InjectionRead | None = None
    evening_details: InjectionRead | None = None
    all_complete: bool
    injections: list[InjectionRead] = Field(default_factory=list)
