from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.core.rate_limit import enforce_api_rate_limit, enforce_injection_rate_limit
from app.db.connection import get_db
from app.schemas.injection import (
    InjectionCreate,
    InjectionPage,
    InjectionRead,
    InjectionType,
    InjectionUpdate,
    TodayStatus,
)
from app.services.injection_service import InjectionService
from app.utils.dates import parse_date
from app.utils.validators import normalize_user_filter

router = APIRouter(prefix="/injections", tags=["Injections"])


def get_injection_service(db: Session = Depends(get_db)) -> InjectionService:
    return InjectionService(db)


@router.post(
    "",
    response_model=InjectionRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_injection_rate_limit)],
)
def create_injection(
    payload: InjectionCreate,
    service: InjectionService = Depends(get_injection_service),
) -> InjectionRead:
    """Log an injection.

    Returns 409 if the same user already logged this dose type on the same
    local calendar day.
    """
    return InjectionRead.model_validate(service.create(payload))


@router.get(
    "",
    response_model=InjectionPage,
    dependencies=[Depends(enforce_api_rate_limit)],
)
def list_injections(
    date: str | None = Query(None, description="Local calendar day, YYYY-MM-DD."),
    user_name: str | None = Query(None),
    injection_type: InjectionType | None = Query(None),
    page: str | None = Query(None, description="Page number, starting at 1."),
    per_page: str | None = Query(None, description="Page size (default 20, max 100)."),
    service: InjectionService = Depends(get_injection_service),
) -> InjectionPage:
    """Injection history, newest first."""
    day = parse_date(date) if date else None
    return service.list(
        day=day,
        user_name=normalize_user_filter(user_name),
        injection_type=injection_type,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/today",
    response_model=TodayStatus,
    dependencies=[Depends(enforce_api_rate_limit)],
)
def today_status(
    user_name: str | None = Query(None),
    service: InjectionService = Depends(get_injection_service),
) -> TodayStatus:
    return service.today_status(user_name=normalize_user_filter(user_name))


@router.get(
    "/{injection_id}",
    response_model=InjectionRead,
    dependencies=[Depends(enforce_api_rate_limit)],
)
def get_injection(
    injection_id: int,
    service: InjectionService = Depends(get_injection_service),
) -> InjectionRead:
    return InjectionRead.model_validate(service.get(injection_id))


@router.patch(
    "/{injection_id}",
    response_model=InjectionRead,
    dependencies=[Depends(enforce_injection_rate_limit)],
)
def update_injection(
    injection_id: int,
    payload: InjectionUpdate,
    service: InjectionService = Depends(get_injection_service),
) -> InjectionRead:
    """Change selected fields of an injection."""
    return InjectionRead.model_validate(service.update(injection_id, payload))


@router.delete(
    "/{injection_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(enforce_injection_rate_limit)],
)
def delete_injection(
    injection_id: int,
    service: InjectionService = Depends(get_injection_service),
) -> Response:
    service.delete(injection_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
