"""Pattern analysis over injection history.

Every function here is pure: it takes already-loaded injections and a
reference instant, so results are reproducible in tests. Glucose readings
logged in mmol/L are converted to mg/dL before any averaging.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from statistics import fmean
from typing import Iterable

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ValidationAppError
from app.db.models import Injection
from app.repositories.injection_repository import InjectionRepository
from app.schemas.injection import GlucoseUnit, InjectionType, MealType
from app.schemas.stats import (
    AnalyticsReport,
    ComplianceTrend,
    ComplianceTrends,
    DayOfWeekPattern,
    GlucosePatterns,
    Insight,
    TimePattern,
)
from app.services.stats_service import MAX_WINDOW_DAYS, doses_by_day, round_half_up
from app.utils.dates import local_date, to_local, utcnow, window_bounds, window_days

logger = logging.getLogger(__name__)

MMOL_TO_MG_DL = 18.0182
TARGET_MIN_MG_DL = 70
TARGET_MAX_MG_DL = 180
SLOT_MINUTES = 15
DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

DAY_PATTERN_GAP = 20
RECENT_DAYS = 7
LOW_COMPLIANCE = 70
HIGH_COMPLIANCE = 90
MIN_GLUCOSE_READINGS = 10


def to_mg_dl(value: float | None, unit: str | None) -> float | None:
    if value is None:
        return None
    if unit == GlucoseUnit.MMOL_L.value:
        return value * MMOL_TO_MG_DL
    return value


def glucose_before(injection: Injection) -> float | None:
    return to_mg_dl(injection.blood_glucose_before, injection.blood_glucose_unit)


def glucose_after(injection: Injection) -> float | None:
    return to_mg_dl(injection.blood_glucose_after, injection.blood_glucose_unit)


def time_patterns(injections: Iterable[Injection]) -> list[TimePattern]:
    """Bucket injections into 15-minute local time slots, earliest slot first."""
    counts: dict[tuple[int, int], int] = defaultdict(int)
    readings: dict[tuple[int, int], list[float]] = defaultdict(list)

    for injection in injections:
        local = to_local(injection.injection_time)
        slot = (local.hour, local.minute // SLOT_MINUTES * SLOT_MINUTES)
        counts[slot] += 1
        reading = glucose_before(injection)
        if reading is not None:
            readings[slot].append(reading)

    return [
        TimePattern(
            hour=hour,
            minute=minute,
            count=counts[(hour, minute)],
            average_glucose=(
                round_half_up(fmean(readings[(hour, minute)]))
                if readings[(hour, minute)]
                else None
            ),
        )
        for hour, minute in sorted(counts)
    ]


def day_of_week_patterns(
    injections: Iterable[Injection],
    *,
    doses_per_day: int = 2,
) -> list[DayOfWeekPattern]:
    """Per-weekday totals, Monday first.

    Compliance for a weekday is injections on it divided by the doses
    expected on the distinct dates it was seen.
    """
    totals = [0] * 7
    mornings = [0] * 7
    evenings = [0] * 7
    seen: list[set[date]] = [set() for _ in range(7)]

    for injection in injections:
        day = local_date(injection.injection_time)
        weekday = day.weekday()
        totals[weekday] += 1
        seen[weekday].add(day)
        if injection.injection_type == InjectionType.MORNING.value:
            mornings[weekday] += 1
        elif injection.injection_type == InjectionType.EVENING.value:
            evenings[weekday] += 1

    patterns = []
    for weekday, name in enumerate(DAY_NAMES):
        expected = len(seen[weekday]) * doses_per_day
        rate = min(100.0, round_half_up(totals[weekday] / expected * 100)) if expected else 0.0
        patterns.append(
            DayOfWeekPattern(
                day_of_week=weekday,
                day_name=name,
                total_injections=totals[weekday],
                morning_count=mornings[weekday],
                evening_count=evenings[weekday],
                compliance_rate=rate,
            )
        )
    return patterns


def _period_trend(
    start: date,
    days: list[date],
    label: str,
    by_day: dict[date, set[str]],
    doses_per_day: int,
) -> ComplianceTrend:
    expected = len(days) * doses_per_day
    actual = sum(min(len(by_day.get(day, ())), doses_per_day) for day in days)
    perfect = all(len(by_day.get(day, ())) >= doses_per_day for day in days)
    return ComplianceTrend(
        date=start,
        label=label,
        expected_doses=expected,
        actual_doses=actual,
        compliance_rate=round_half_up(actual / expected * 100) if expected else 0.0,
        perfect=perfect,
    )


def compliance_trends(
    injections: Iterable[Injection],
    *,
    days: int,
    now: datetime,
    doses_per_day: int = 2,
) -> ComplianceTrends:
    """Daily, ISO-weekly and monthly compliance across the window.

    Weeks start on Monday; the first week and month are clipped to the
    window start.
    """
    window = window_days(days, now)
    by_day = doses_by_day(injections)

    daily = [
        _period_trend(day, [day], f"{day:%b} {day.day}", by_day, doses_per_day)
        for day in window
    ]

    weeks: dict[date, list[date]] = {}
    months: dict[date, list[date]] = {}
    for day in window:
        weeks.setdefault(day - timedelta(days=day.weekday()), []).append(day)
        months.setdefault(day.replace(day=1), []).append(day)

    weekly = [
        _period_trend(
            week_start, members, f"Week of {week_start:%b} {week_start.day}", by_day, doses_per_day
        )
        for week_start, members in weeks.items()
    ]
    monthly = [
        _period_trend(month_start, members, month_start.strftime("%b %Y"), by_day, doses_per_day)
        for month_start, members in months.items()
    ]
    return ComplianceTrends(daily=daily, weekly=weekly, monthly=monthly)


def glucose_patterns(injections: Iterable[Injection]) -> GlucosePatterns | None:
    """Average readings per meal and overall time in range.

    Returns None when no reading is tied to a meal.
    """
    before: dict[str, list[float]] = defaultdict(list)
    after: dict[str, list[float]] = defaultdict(list)
    all_readings: list[float] = []

    for injection in injections:
        reading_before = glucose_before(injection)
        reading_after = glucose_after(injection)
        all_readings.extend(r for r in (reading_before, reading_after) if r is not None)
        if injection.meal_type:
            if reading_before is not None:
                before[injection.meal_type].append(reading_before)
            if reading_after is not None:
                after[injection.meal_type].append(reading_after)

    if not before:
        return None

    meals = [meal.value for meal in MealType]
    in_range = sum(1 for r in all_readings if TARGET_MIN_MG_DL <= r <= TARGET_MAX_MG_DL)
    return GlucosePatterns(
        average_before_meal={m: round_half_up(fmean(before[m])) for m in meals if before.get(m)},
        average_after_meal={m: round_half_up(fmean(after[m])) for m in meals if after.get(m)},
        time_in_range=round_half_up(in_range / len(all_readings) * 100) if all_readings else 0.0,
    )


def generate_insights(
    injections: list[Injection],
    times: list[TimePattern],
    weekdays: list[DayOfWeekPattern],
    *,
    now: datetime,
    doses_per_day: int = 2,
) -> list[Insight]:
    """Turn patterns into short human-readable observations."""
    insights: list[Insight] = []
    if not injections:
        return insights

    if times:
        top = max(times, key=lambda slot: (slot.count, -(slot.hour * 60 + slot.minute)))
        insights.append(
            Insight(
                type="time_pattern",
                message=f"You usually inject at {top.hour}:{top.minute:02d}",
                confidence=round(top.count / len(injections), 2),
                data=top.model_dump(),
            )
        )

    observed = [day for day in weekdays if day.total_injections > 0]
    if len(observed) >= 2:
        best = max(observed, key=lambda day: day.compliance_rate)
        worst = min(observed, key=lambda day: day.compliance_rate)
        if best.compliance_rate > worst.compliance_rate + DAY_PATTERN_GAP:
            insights.append(
                Insight(
                    type="day_pattern",
                    message=(
                        f"Your compliance is best on {best.day_name}s ({best.compliance_rate}%) "
                        f"and lowest on {worst.day_name}s ({worst.compliance_rate}%)"
                    ),
                    confidence=0.8,
                    data={"best_day": best.model_dump(), "worst_day": worst.model_dump()},
                )
            )

    recent_days = window_days(RECENT_DAYS, now)
    by_day = doses_by_day(injections)
    taken = sum(min(len(by_day.get(day, ())), doses_per_day) for day in recent_days)
    recent = round_half_up(taken / (RECENT_DAYS * doses_per_day) * 100)
    if recent < LOW_COMPLIANCE:
        insights.append(
            Insight(
                type="compliance_trend",
                message="Your compliance has been lower than usual this week. Consider setting reminders.",
                confidence=0.9,
                data={"recent_compliance": recent},
            )
        )
    elif recent > HIGH_COMPLIANCE:
        insights.append(
            Insight(
                type="compliance_trend",
                message="Great job! Your compliance has been excellent this week!",
                confidence=0.9,
                data={"recent_compliance": recent},
            )
        )

    readings = [r for r in (glucose_before(inj) for inj in injections) if r is not None]
    if len(readings) > MIN_GLUCOSE_READINGS:
        average = fmean(readings)
        data = {
            "average_glucose": round_half_up(average),
            "target_min": TARGET_MIN_MG_DL,
            "target_max": TARGET_MAX_MG_DL,
        }
        if average < TARGET_MIN_MG_DL:
            message = f"Your average glucose ({round(average)} mg/dL) is below target range"
        elif average > TARGET_MAX_MG_DL:
            message = f"Your average glucose ({round(average)} mg/dL) is above target range"
        else:
            message = None
        if message:
            insights.append(
                Insight(type="glucose_pattern", message=message, confidence=0.85, data=data)
            )

    return insights


def build_report(
    injections: list[Injection],
    *,
    days: int,
    now: datetime,
    doses_per_day: int = 2,
) -> AnalyticsReport:
    """Assemble the full analytics report for pre-filtered ``injections``."""
    times = time_patterns(injections)
    weekdays = day_of_week_patterns(injections, doses_per_day=doses_per_day)
    return AnalyticsReport(
        days=days,
        time_patterns=times,
        day_of_week_patterns=weekdays,
        compliance_trends=compliance_trends(
            injections, days=days, now=now, doses_per_day=doses_per_day
        ),
        insights=generate_insights(
            injections, times, weekdays, now=now, doses_per_day=doses_per_day
        ),
        glucose_patterns=glucose_patterns(injections),
    )


class AnalyticsService:
    """Loads the analysis window and builds reports."""

    def __init__(self, session: Session) -> None:
        self.repository = InjectionRepository(session)

    def load(
        self,
        *,
        days: int,
        user_name: str | None = None,
        now: datetime | None = None,
    ) -> list[Injection]:
        """Injections in the last ``days`` local days, oldest first."""
        if not 1 <= days <= MAX_WINDOW_DAYS:
            raise ValidationAppError(
                code="invalid_days",
                message=f"days must be between 1 and {MAX_WINDOW_DAYS}",
                details={"field": "days"},
            )
        start, end = window_bounds(days, now or utcnow())
        return self.repository.in_range(start, end, user_name=user_name)

    def report(
        self,
        *,
        days: int = 30,
        user_name: str | None = None,
        now: datetime | None = None,
    ) -> AnalyticsReport:
        now = now or utcnow()
        injections = self.load(days=days, user_name=user_name, now=now)
        report = build_report(
            injections, days=days, now=now, doses_per_day=settings.app.doses_per_day
        )
        logger.info(
            "analytics.generated",
            extra={
                "days": days,
                "filtered_by_user": bool(user_name),
                "injection_count": len(injections),
                "insight_count": len(report.insights),
            },
        )
        return report
