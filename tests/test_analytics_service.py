"""Tests for pattern analysis and insights."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from app.db.models import Injection
from app.services.analytics_service import (
    AnalyticsService,
    build_report,
    compliance_trends,
    day_of_week_patterns,
    generate_insights,
    glucose_patterns,
    time_patterns,
    to_mg_dl,
)

# Wednesday
NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


def _inj(
    when: datetime,
    kind: str = "morning",
    *,
    before: float | None = None,
    after: float | None = None,
    unit: str = "mg/dL",
    meal: str | None = None,
) -> Injection:
    return Injection(
        user_name="Alice",
        injection_time=when,
        injection_type=kind,
        blood_glucose_before=before,
        blood_glucose_after=after,
        blood_glucose_unit=unit,
        meal_type=meal,
    )


def _at(days_ago: int, hour: int, minute: int = 0) -> datetime:
    return (NOW - timedelta(days=days_ago)).replace(hour=hour, minute=minute)


def test_time_patterns_bucket_to_quarter_hours():
    patterns = time_patterns(
        [
            _inj(_at(0, 8, 7), before=100),
            _inj(_at(1, 8, 14), before=120),
            _inj(_at(2, 8, 15)),
            _inj(_at(0, 20, 59), "evening"),
        ]
    )

    assert [(p.hour, p.minute, p.count) for p in patterns] == [(8, 0, 2), (8, 15, 1), (20, 45, 1)]
    assert patterns[0].average_glucose == 110.0
    assert patterns[1].average_glucose is None


def test_day_of_week_patterns_start_on_monday():
    monday = date(2024, 5, 13)
    patterns = day_of_week_patterns(
        [
            _inj(datetime(2024, 5, 13, 8, tzinfo=timezone.utc)),
            _inj(datetime(2024, 5, 13, 20, tzinfo=timezone.utc), "evening"),
            _inj(datetime(2024, 5, 15, 8, tzinfo=timezone.utc)),
        ]
    )

    assert monday.weekday() == 0
    assert [p.day_name for p in patterns][:3] == ["Monday", "Tuesday", "Wednesday"]
    assert patterns[0].compliance_rate == 100.0
    assert patterns[0].morning_count == 1
    assert patterns[0].evening_count == 1
    assert patterns[1].total_injections == 0
    assert patterns[1].compliance_rate == 0.0
    assert patterns[2].compliance_rate == 50.0


def test_compliance_trends_cover_exact_window():
    trends = compliance_trends(
        [_inj(_at(0, 8)), _inj(_at(0, 20), "evening"), _inj(_at(1, 8))],
        days=10,
        now=NOW,
    )

    assert len(trends.daily) == 10
    assert trends.daily[-1].date == date(2024, 5, 15)
    assert trends.daily[-1].perfect is True
    assert trends.daily[-1].label == "May 15"
    assert trends.daily[-2].compliance_rate == 50.0
    assert trends.daily[0].date == date(2024, 5, 6)

    # Window 6th..15th spans ISO weeks starting 6th and 13th
    assert [w.date for w in trends.weekly] == [date(2024, 5, 6), date(2024, 5, 13)]
    assert trends.weekly[1].expected_doses == 6
    assert trends.weekly[1].actual_doses == 3
    assert trends.weekly[1].label == "Week of May 13"

    assert len(trends.monthly) == 1
    assert trends.monthly[0].label == "May 2024"
    assert trends.monthly[0].expected_doses == 20


def test_monthly_trend_clips_to_window_start():
    trends = compliance_trends([], days=20, now=NOW)

    assert [m.date for m in trends.monthly] == [date(2024, 4, 1), date(2024, 5, 1)]
    # April 26..30
    assert trends.monthly[0].expected_doses == 10


def test_glucose_patterns_convert_mmol_and_compute_time_in_range():
    patterns = glucose_patterns(
        [
            _inj(_at(0, 8), before=5.0, after=10.0, unit="mmol/L", meal="breakfast"),
            _inj(_at(1, 8), before=200, meal="breakfast"),
            _inj(_at(1, 20), "evening", before=60),
        ]
    )

    assert patterns is not None
    assert patterns.average_before_meal == {"breakfast": round((5.0 * 18.0182 + 200) / 2, 1)}
    assert patterns.average_after_meal == {"breakfast": 180.2}
    # 90.1 in range; 180.2, 200 and 60 out
    assert patterns.time_in_range == 25.0


def test_glucose_patterns_absent_without_meal_readings():
    assert glucose_patterns([_inj(_at(0, 8), before=110)]) is None


def test_to_mg_dl():
    assert to_mg_dl(None, "mmol/L") is None
    assert to_mg_dl(100, "mg/dL") == 100
    assert round(to_mg_dl(10, "mmol/L"), 3) == 180.182


def test_insights_for_excellent_week():
    injections = [_inj(_at(d, 8)) for d in range(7)] + [_inj(_at(d, 20), "evening") for d in range(7)]
    times = time_patterns(injections)
    weekdays = day_of_week_patterns(injections)

    insights = generate_insights(injections, times, weekdays, now=NOW)
    by_type = {i.type: i for i in insights}

    assert by_type["time_pattern"].message == "You usually inject at 8:00"
    assert by_type["time_pattern"].confidence == 0.5
    assert "excellent" in by_type["compliance_trend"].message
    assert "day_pattern" not in by_type


def test_insights_flag_low_compliance_weekday_gap_and_high_glucose():
    injections = [
        _inj(datetime(2024, 5, 13, 8, tzinfo=timezone.utc), before=250),
        _inj(datetime(2024, 5, 13, 20, tzinfo=timezone.utc), "evening", before=250),
        _inj(datetime(2024, 5, 14, 8, tzinfo=timezone.utc), before=250),
    ]
    # April mornings on every weekday except Monday
    injections += [
        _inj(datetime(2024, 4, day, 8, tzinfo=timezone.utc), before=240)
        for day in (2, 3, 4, 5, 6, 7, 9, 10, 11)
    ]
    times = time_patterns(injections)
    weekdays = day_of_week_patterns(injections)

    insights = generate_insights(injections, times, weekdays, now=NOW)
    by_type = {i.type: i for i in insights}

    assert "lower than usual" in by_type["compliance_trend"].message
    assert by_type["glucose_pattern"].message.endswith("above target range")
    assert by_type["glucose_pattern"].data["target_max"] == 180
    assert "day_pattern" in by_type


def test_no_insights_without_injections():
    assert generate_insights([], [], day_of_week_patterns([]), now=NOW) == []


def test_build_report_omits_glucose_section_without_readings():
    report = build_report([_inj(_at(0, 8))], days=7, now=NOW)

    assert report.days == 7
    assert report.glucose_patterns is None
    assert len(report.day_of_week_patterns) == 7


def test_service_reads_window_from_database(db_session):
    db_session.add_all([_inj(_at(0, 8)), _inj(_at(40, 8))])
    db_session.commit()

    report = AnalyticsService(db_session).report(days=30, now=NOW)

    assert sum(p.count for p in report.time_patterns) == 1


def test_analytics_route(client):
    resp = client.get("/v1/analytics", params={"days": 14})

    assert resp.status_code == 200
    data = resp.json()
    assert data["days"] == 14
    assert len(data["compliance_trends"]["daily"]) == 14
    assert client.get("/v1/analytics", params={"days": 0}).status_code == 400
