"""Compliance statistics over a window of local calendar days.

A dose counts once per (day, type): logging two evening injections on the
same day does not raise compliance above what one would.
"""

from __future__ import annotations

import logging
import math
import threading
from collections import Counter, defaultdict
from datetime import date, datetime
from typing import Iterable

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ValidationAppError
from app.db.models import Injection
from app.repositories.injection_repository import InjectionRepository
from app.schemas.injection import InjectionType
from app.schemas.stats import InjectionStats
from app.utils.dates import local_date, utcnow, window_bounds, window_days
from app.utils.simple_cache import SimpleTTLCache, build_cache_key

logger = logging.getLogger(__name__)

MAX_WINDOW_DAYS = 366

_stats_cache: SimpleTTLCache[InjectionStats] | None = None

# Bumped on every injection write and part of each cache key, so a result
# computed from rows read before the write is never served after it.
_generation = 0
_generation_lock = threading.Lock()


def get_stats_cache() -> SimpleTTLCache[InjectionStats]:
    global _stats_cache
    if _stats_cache is None:
        _stats_cache = SimpleTTLCache(ttl_seconds=settings.app.stats_cache_ttl_seconds)
    return _stats_cache


def cache_generation() -> int:
    return _generation


def invalidate_stats_cache() -> None:
    """Drop cached statistics; called after every injection write."""
    global _generation
    with _generation_lock:
        _generation += 1
    if _stats_cache is not None:
        _stats_cache.clear()


def round_half_up(value: float, digits: int = 1) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def doses_by_day(injections: Iterable[Injection]) -> dict[date, set[str]]:
    """Map each local calendar day to the dose types logged on it."""
    days: dict[date, set[str]] = defaultdict(set)
    for injection in injections:
        days[local_date(injection.injection_time)].add(injection.injection_type)
    return days


def distinct_doses(days: Iterable[date], by_day: dict[date, set[str]], doses_per_day: int) -> int:
    return sum(min(len(by_day.get(day, ())), doses_per_day) for day in days)


def is_perfect_day(types: set[str]) -> bool:
    return InjectionType.MORNING.value in types and InjectionType.EVENING.value in types


def compute_stats(
    injections: list[Injection],
    *,
    days: int,
    compliance_days: int,
    doses_per_day: int,
    now: datetime,
) -> InjectionStats:
    """Compute compliance figures for ``injections``.

    Args:
        injections: Records covering at least the longer of both windows.
        days: Main window length in days.
        compliance_days: Short window for ``last_week_compliance``.
        doses_per_day: Expected doses per day.
        now: Reference instant; today is the last day of both windows.

    Returns:
        InjectionStats for the main window.
    """
    window = window_days(days, now)
    window_set = set(window)
    in_window = [inj for inj in injections if local_date(inj.injection_time) in window_set]

    by_day = doses_by_day(injections)
    expected = days * doses_per_day
    taken = distinct_doses(window, by_day, doses_per_day)

    type_counts = Counter(inj.injection_type for inj in in_window)
    user_counts = Counter(inj.user_name for inj in in_window)
    contributions = dict(sorted(user_counts.items(), key=lambda item: (-item[1], item[0])))

    short_window = window_days(compliance_days, now)
    short_expected = compliance_days * doses_per_day
    short_taken = distinct_doses(short_window, by_day, doses_per_day)

    return InjectionStats(
        total_injections=len(in_window),
        morning_count=type_counts.get(InjectionType.MORNING.value, 0),
        evening_count=type_counts.get(InjectionType.EVENING.value, 0),
        compliance_rate=min(100.0, round_half_up(taken / expected * 100)),
        missed_doses=max(0, expected - taken),
        perfect_days=sum(1 for day in window if is_perfect_day(by_day.get(day, set()))),
        total_days=days,
        user_contributions=contributions,
        last_week_compliance=min(100, int(round_half_up(short_taken / short_expected * 100, 0))),
    )


class StatsService:
    """Loads window data and computes (cached) statistics."""

    def __init__(self, session: Session, cache: SimpleTTLCache[InjectionStats] | None = None) -> None:
        self.repository = InjectionRepository(session)
        self.cache = cache if cache is not None else get_stats_cache()

    def get_stats(
        self,
        *,
        days: int | None = None,
        user_name: str | None = None,
        now: datetime | None = None,
    ) -> InjectionStats:
        """Return statistics for the last ``days`` days (default ``APP_STATS_DAYS``).

        Raises:
            ValidationAppError: If ``days`` is outside 1..366.
        """
        if days is None:
            days = settings.app.stats_days
        if not 1 <= days <= MAX_WINDOW_DAYS:
            raise ValidationAppError(
                code="invalid_days",
                message=f"days must be between 1 and {MAX_WINDOW_DAYS}",
                details={"field": "days"},
            )

        now = now or utcnow()
        compliance_days = settings.app.compliance_days
        doses_per_day = settings.app.doses_per_day
        key = build_cache_key(
            "stats",
            cache_generation(),
            days,
            user_name,
            compliance_days,
            doses_per_day,
            window_days(1, now)[0],
        )

        def compute() -> InjectionStats:
            start, end = window_bounds(max(days, compliance_days), now)
            injections = self.repository.in_range(start, end, user_name=user_name)
            stats = compute_stats(
                injections,
                days=days,
                compliance_days=compliance_days,
                doses_per_day=doses_per_day,
                now=now,
            )
            logger.info(
                "stats.computed",
                extra={
                    "days": days,
                    "filtered_by_user": bool(user_name),
                    "total_injections": stats.total_injections,
                    "compliance_rate": stats.compliance_rate,
                },
            )
            return stats

        stats, cached = self.cache.get_or_compute(key, compute)
        if cached:
            return stats.model_copy(update={"cached": True})
        return stats
