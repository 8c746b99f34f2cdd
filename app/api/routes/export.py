from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, PlainTextResponse
from sqlalchemy.orm import Session

from app.core.rate_limit import enforce_api_rate_limit
from app.db.connection import get_db
from app.services.export_service import ExportService
from app.utils.dates import parse_date, today
from app.utils.validators import normalize_user_filter

router = APIRouter(
    prefix="/export",
    tags=["Export"],
    dependencies=[Depends(enforce_api_rate_limit)],
)


@router.get("/injections.csv", response_class=PlainTextResponse)
def export_injections_csv(
    user_name: str | None = Query(None),
    start: str | None = Query(None, description="First local day, YYYY-MM-DD."),
    end: str | None = Query(None, description="Last local day, YYYY-MM-DD."),
    db: Session = Depends(get_db),
) -> PlainTextResponse:
    """Download injection history as CSV."""
    content = ExportService(db).injections_csv(
        user_name=normalize_user_filter(user_name),
        start=parse_date(start, field="start") if start else None,
        end=parse_date(end, field="end") if end else None,
    )
    filename = f"insulin-data-{today().isoformat()}.csv"
    return PlainTextResponse(
        content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/report.html", response_class=HTMLResponse)
def export_report(
    days: int = Query(30, description="Window length in days."),
    user_name: str | None = Query(None),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Printable HTML report (print to PDF from the browser)."""
    report = ExportService(db).html_report(days=days, user_name=normalize_user_filter(user_name))
    return HTMLResponse(report)
