from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from oceanus.domain.models import DashboardSummaryRead
from oceanus.services.dashboard_service import DashboardService

router = APIRouter()


def get_dashboard_service() -> DashboardService:
    return DashboardService()


Service = Annotated[DashboardService, Depends(get_dashboard_service)]


@router.get("/summary", response_model=DashboardSummaryRead)
def get_summary(service: Service) -> DashboardSummaryRead:
    return service.summary()
