"""Tests for CSV and HTML exports."""

from __future__ import annotations

import csv
import io
from datetime import datetime, timezone

from app.db.models import Injection
from app.services.analytics_service import build_report
from app.services.export_service import CSV_HEADERS, injections_to_csv, render_html_report

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


def _inj(**overrides) -> Injection:
    values = {
        "user_name": "Alice",
        "injection_time": datetime(2024, 5, 15, 8, 5, tzinfo=timezone.utc),
        "injection_type": "morning",
        "blood_glucose_unit": "mg/dL",
    }
    values.update(overrides)
    return Injection(**values)


def test_csv_has_header_and_quoted_cells():
    content = injections_to_csv(
        [_inj(dosage_units=12.0, blood_glucose_before=104.5, notes='said "ok", then left')]
    )

    lines = content.splitlines()
    assert lines[0] == ",".join(f'"{h}"' for h in CSV_HEADERS)
    assert lines[1].startswith('"2024-05-15","08:05","morning"')

    rows = list(csv.reader(io.StringIO(content)))
    assert rows[1][5] == "12"
    assert rows[1][6] == "104.5"
    assert rows[1][8] == "mg/dL"
    assert rows[1][12] == 'said "ok", then left'


def test_csv_uses_local_time(monkeypatch):
    from app.core.config import settings

    monkeypatch.setattr(settings.app, "timezone", "America/Los_Angeles")

    content = injections_to_csv([_inj()])

    assert '"2024-05-15","01:05"' in content


def test_html_report_escapes_user_text():
    injections = [_inj(notes="<script>alert(1)</script>", insulin_brand="A&B")]
    report = build_report(injections, days=7, now=NOW)

    html = render_html_report(injections, report, user_name="O'Brien", now=NOW)

    assert "<script>alert(1)</script>" not in html
    assert "&lt;script&gt;" in html
    assert "A&amp;B" in html
    assert "O&#x27;Brien" in html
    assert "Report Date:</strong> May 15, 2024" in html
    assert "Data Range:</strong> May 15, 2024 - May 15, 2024" in html


def test_html_report_without_data():
    report = build_report([], days=7, now=NOW)

    html = render_html_report([], report, now=NOW)

    assert "All Users" in html
    assert "No data" in html
    assert "N/A" in html
    assert "Key Insights" not in html


def test_csv_route(client):
    client.post(
        "/v1/injections",
        json={"user_name": "Alice", "injection_time": "2024-05-14T08:00:00Z", "injection_type": "morning"},
    )
    client.post(
        "/v1/injections",
        json={"user_name": "Alice", "injection_time": "2024-05-16T08:00:00Z", "injection_type": "morning"},
    )

    resp = client.get("/v1/export/injections.csv", params={"start": "2024-05-15"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "attachment" in resp.headers["content-disposition"]
    rows = list(csv.reader(io.StringIO(resp.text)))
    assert len(rows) == 2
    assert rows[1][0] == "2024-05-16"


def test_csv_route_validates_range(client):
    assert client.get("/v1/export/injections.csv", params={"start": "2024/05/15"}).status_code == 400
    resp = client.get(
        "/v1/export/injections.csv", params={"start": "2024-05-16", "end": "2024-05-15"}
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_date_range"


def test_report_route(client):
    resp = client.get("/v1/export/report.html", params={"user_name": "Alice"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/html")
    assert "Insulin Injection Report" in resp.text
