"""Pydantic schemas for compliance statistics and analytics."""

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, Field


class InjectionStats(BaseModel):
    """Compliance summary over a window of local calendar days."""

    total_injections: int = Field(..., description="Injections logged in the window.")
    morning_count: int
    evening_count: int
    compliance_rate: float = Field(
        ...,
        ge=0,
        le=100,
        description="Distinct doses taken / doses expected, in percent (one decimal).",
    )
    missed_doses: int = Field(..., ge=0, description="Expected doses with no record.")
    perfect_days: int = Field(..., description="Days with both morning and evening logged.")
    total_days: int = Field(..., description="Length of the window in days.")
    user_contributions: dict[str, int] = Field(
        default_factory=dict,
        description="Injections per user name, most active first.",
    )
    last_week_compliance: int = Field(
        ...,
        ge=0,
        le=100,
        description="Whole-percent compliance over the short compliance window.",
    )
    cached: bool = Field(False, description="True if served from the statistics cache.")


class TimePattern(BaseModel):
    hour: int
    minute: int
    count: int
    average_glucose: float | None = None


class DayOfWeekPattern(BaseModel):
    day_of_week: int = Field(..., description="0 = Monday ... 6 = Sunday.")
    day_name: str
    total_injections: int
    morning_count: int
    evening_count: int
    compliance_rate: float


class ComplianceTrend(BaseModel):
    date: date
    label: str
    expected_doses: int
    actual_doses: int
    compliance_rate: float
    perfect: bool = Field(..., description="Every day in the period had both doses.")


class ComplianceTrends(BaseModel):
    daily: list[ComplianceTrend]
    weekly: list[ComplianceTrend]
    monthly: list[ComplianceTrend]


class Insight(BaseModel):
    type: Literal["time_pattern", "day_pattern", "compliance_trend", "glucose_pattern"]
    message: str
    confidence: float = Field(..., ge=0, le=1)
    data: dict[str, Any] | None = None


class GlucosePatterns(BaseModel):
    average_before_meal: dict[str, float]
    average_after_meal: dict[str, float]
    time_in_range: float = Field(..., description="Share of readings within 70-180 mg/dL.")


class AnalyticsReport(BaseModel):
    days: int
    time_patterns: list[TimePattern]
    day_of_week_patterns: list[DayOfWeekPattern]
    compliance_trends: ComplianceTrends
    insights: list[Insight]
    glucose_patterns: GlucosePatterns | None = None
