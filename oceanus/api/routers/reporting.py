from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status

from oceanus.api.deps import get_current_claims, raise_http_error, require_role
from oceanus.domain.access import ANALYST_ROLES
from oceanus.domain.errors import ValidationError
from oceanus.domain.models import ReportCreate, ReportRead, ReportTypeRead
from oceanus.infra.audit import set_audit_context
from oceanus.services.reporting_service import ReportingService

router = APIRouter()


def get_reporting_service() -> ReportingService:
    return ReportingService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[ReportingService, Depends(get_reporting_service)]


@router.get(
    "/types",
    response_model=list[ReportTypeRead],
    dependencies=[Depends(require_role(*ANALYST_ROLES))],
)
def report_types(service: Service) -> list[ReportTypeRead]:
    return service.report_types()


@router.get(
    "",
    response_model=list[ReportRead],
    dependencies=[Depends(require_role(*ANALYST_ROLES))],
)
def list_reports(service: Service) -> list[ReportRead]:
    return service.list_reports()


@router.post(
    "",
    response_model=ReportRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_role(*ANALYST_ROLES))],
)
def generate_report(payload: ReportCreate, request: Request, claims: Claims, service: Service) -> ReportRead:
    try:
        report = service.generate(payload, created_by=claims["sub"])
    except ValidationError as exc:
        raise_http_error(exc)
    set_audit_context(request, action="report.generate", resource=f"report:{report.id}")
    return report
