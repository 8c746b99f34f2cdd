"""CSV and printable HTML exports of injection history."""

from __future__ import annotations

import csv
import io
import logging
from datetime import date, datetime
from html import escape
from statistics import fmean

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ValidationAppError
from app.db.models import Injection
from app.repositories.injection_repository import InjectionRepository
from app.schemas.stats import AnalyticsReport
from app.services.analytics_service import AnalyticsService, build_report
from app.utils.dates import day_bounds, to_local, utcnow

logger = logging.getLogger(__name__)

CSV_HEADERS = (
    "Date",
    "Time",
    "Type",
    "Insulin Type",
    "Brand",
    "Dosage (units)",
    "Blood Glucose Before",
    "Blood Glucose After",
    "BG Unit",
    "Meal Type",
    "Carbs (g)",
    "Injection Site",
    "Notes",
)

REPORT_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 800px; margin: 0 auto; padding: 20px; }
    h1, h2, h3 { color: #2563eb; }
    .header { border-bottom: 2px solid #2563eb; padding-bottom: 20px; margin-bottom: 30px; }
    .summary { background-color: #f3f4f6; padding: 20px; border-radius: 8px; margin-bottom: 30px; }
    .summary-grid { display: grid; grid-template-columns: repeat(2, 1fr); gap: 20px; }
    .summary-item { background: white; padding: 15px; border-radius: 4px; }
    .summary-value { font-size: 24px; font-weight: bold; color: #2563eb; }
    .summary-label { color: #6b7280; font-size: 14px; }
    table { width: 100%; border-collapse: collapse; margin-top: 20px; }
    th, td { border: 1px solid #e5e7eb; padding: 8px; text-align: left; }
    th { background-color: #f3f4f6; }
    tr:nth-child(even) { background-color: #f9fafb; }
    .insights { background-color: #fef3c7; border: 1px solid #fbbf24; padding: 15px; border-radius: 8px; margin: 20px 0; }
    @media print { body { padding: 0; } }
"""


def _text(value: object | None) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def injections_to_csv(injections: list[Injection]) -> str:
    """Render injections as CSV with every cell quoted; times are local."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for injection in injections:
        local = to_local(injection.injection_time)
        writer.writerow(
            [
                local.strftime("%Y-%m-%d"),
                local.strftime("%H:%M"),
                injection.injection_type,
                _text(injection.insulin_type),
                _text(injection.insulin_brand),
                _text(injection.dosage_units),
                _text(injection.blood_glucose_before),
                _text(injection.blood_glucose_after),
                _text(injection.blood_glucose_unit),
                _text(injection.meal_type),
                _text(injection.carbs_grams),
                _text(injection.injection_site),
                _text(injection.notes),
            ]
        )
    return buffer.getvalue()


def _cell(value: object | None, suffix: str = "") -> str:
    text = _text(value)
    return escape(f"{text}{suffix}") if text else "-"


def render_html_report(
    injections: list[Injection],
    report: AnalyticsReport,
    *,
    user_name: str | None = None,
    now: datetime,
) -> str:
    """Build a self-contained printable report.

    ``injections`` are expected newest first. Every user-supplied value is
    HTML-escaped.
    """
    if injections:
        oldest = to_local(injections[-1].injection_time)
        newest = to_local(injections[0].injection_time)
        data_range = f"{oldest:%b} {oldest.day}, {oldest.year} - {newest:%b} {newest.day}, {newest.year}"
    else:
        data_range = "No data"

    local_now = to_local(now)
    daily = report.compliance_trends.daily
    average_compliance = round(fmean(d.compliance_rate for d in daily)) if daily else 0
    perfect_days = sum(1 for d in daily if d.perfect)
    time_in_range = (
        f"{report.glucose_patterns.time_in_range}%" if report.glucose_patterns else "N/A"
    )

    parts = [
        "<!DOCTYPE html>",
        '<html lang="en">',
        "<head>",
        '  <meta charset="UTF-8">',
        "  <title>Insulin Injection Report</title>",
        f"  <style>{REPORT_STYLE}  </style>",
        "</head>",
        "<body>",
        '  <div class="header">',
        "    <h1>Insulin Injection Report</h1>",
        f"    <p><strong>Patient:</strong> {escape(user_name or 'All Users')}</p>",
        f"    <p><strong>Report Date:</strong> {local_now:%B} {local_now.day}, {local_now.year}</p>",
        f"    <p><strong>Data Range:</strong> {data_range}</p>",
        "  </div>",
        '  <div class="summary">',
        "    <h2>Summary</h2>",
        '    <div class="summary-grid">',
    ]
    for value, label in (
        (len(injections), "Total Injections"),
        (f"{average_compliance}%", "Average Compliance"),
        (perfect_days, "Perfect Days"),
        (time_in_range, "Time in Range (70-180 mg/dL)"),
    ):
        parts.append(
            f'      <div class="summary-item"><div class="summary-value">{value}</div>'
            f'<div class="summary-label">{label}</div></div>'
        )
    parts += ["    </div>", "  </div>"]

    if report.insights:
        parts.append('  <div class="insights">')
        parts.append("    <h3>Key Insights</h3>")
        parts += [f"    <p>&bull; {escape(i.message)}</p>" for i in report.insights]
        parts.append("  </div>")

    parts += [
        "  <h2>Injection History</h2>",
        "  <table>",
        "    <thead><tr><th>Date</th><th>Time</th><th>Type</th><th>Insulin</th><th>Dosage</th>"
        "<th>BG Before</th><th>BG After</th><th>Carbs</th><th>Notes</th></tr></thead>",
        "    <tbody>",
    ]
    for injection in injections:
        local = to_local(injection.injection_time)
        cells = [
            local.strftime("%m/%d/%Y"),
            local.strftime("%H:%M"),
            escape(injection.injection_type),
            _cell(injection.insulin_brand or injection.insulin_type),
            _cell(injection.dosage_units, " units"),
            _cell(injection.blood_glucose_before),
            _cell(injection.blood_glucose_after),
            _cell(injection.carbs_grams, "g"),
            _cell(injection.notes),
        ]
        parts.append("      <tr>" + "".join(f"<td>{c}</td>" for c in cells) + "</tr>")
    parts += ["    </tbody>", "  </table>", "</body>", "</html>", ""]
    return "\n".join(parts)


class ExportService:
    """Produces downloadable exports."""

    def __init__(self, session: Session) -> None:
        self.repository = InjectionRepository(session)
        self.analytics = AnalyticsService(session)

    def injections_csv(
        self,
        *,
        user_name: str | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> str:
        """CSV of injections between local dates ``start`` and ``end`` (inclusive), newest first."""
        if start and end and start > end:
            raise ValidationAppError(
                code="invalid_date_range",
                message="start must not be after end",
                details={"field": "start"},
            )
        start_at = day_bounds(start)[0] if start else None
        end_at = day_bounds(end)[1] if end else None
        injections, total = self.repository.find(user_name=user_name, start=start_at, end=end_at)
        logger.info("export.csv", extra={"row_count": total, "filtered_by_user": bool(user_name)})
        return injections_to_csv(injections)

    def html_report(
        self,
        *,
        days: int = 30,
        user_name: str | None = None,
        now: datetime | None = None,
    ) -> str:
        now = now or utcnow()
        injections = self.analytics.load(days=days, user_name=user_name, now=now)
        report = build_report(
            injections, days=days, now=now, doses_per_day=settings.app.doses_per_day
        )
        logger.info(
            "export.report",
            extra={"days": days, "row_count": len(injections), "filtered_by_user": bool(user_name)},
        )
        return render_html_report(
            list(reversed(injections)), report, user_name=user_name, now=now
        )
