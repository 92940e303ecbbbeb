from __future__ import annotations

from typing import Any

from sqlmodel import Session, select

from oceanus.domain.models import AiAnalysis, DashboardSummaryRead, RecentUploadRead
from oceanus.infra.db import get_engine
from oceanus.services.dataset_service import DatasetService

SENSOR_COUNT = 1294
EDNA_SAMPLE_COUNT = 8573
RECENT_UPLOAD_LIMIT = 5

SPECIES_TREND: tuple[dict[str, Any], ...] = (
    {"month": "Jan", "fish": 65, "coral": 82, "plankton": 78},
    {"month": "Feb", "fish": 68, "coral": 85, "plankton": 82},
    {"month": "Mar", "fish": 72, "coral": 88, "plankton": 85},
    {"month": "Apr", "fish": 75, "coral": 92, "plankton": 88},
    {"month": "May", "fish": 78, "coral": 95, "plankton": 92},
    {"month": "Jun", "fish": 82, "coral": 98, "plankton": 95},
)

TEMPERATURE_PH: tuple[dict[str, float], ...] = (
    {"temperature": 18, "ph": 8.1},
    {"temperature": 19, "ph": 8.0},
    {"temperature": 20, "ph": 7.9},
    {"temperature": 21, "ph": 7.8},
    {"temperature": 22, "ph": 7.7},
    {"temperature": 23, "ph": 7.6},
    {"temperature": 24, "ph": 7.5},
    {"temperature": 25, "ph": 7.4},
)


class DashboardService:
    def __init__(self, *, dataset_service: DatasetService | None = None) -> None:
        self._datasets = dataset_service or DatasetService()

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def summary(self) -> DashboardSummaryRead:
        with self._session() as session:
            analyses = len(session.exec(select(AiAnalysis.id)).all())
        recent = self._datasets.recent(RECENT_UPLOAD_LIMIT)
        return DashboardSummaryRead(
            datasets=self._datasets.count(),
            sensors=SENSOR_COUNT,
            edna_samples=EDNA_SAMPLE_COUNT,
            ai_analyses=analyses,
            recent_uploads=[
                RecentUploadRead(
                    id=item.id,
                    name=item.name,
                    type=item.type,
                    location=item.location,
                    date=item.created_at,
                    status=item.status,
                )
                for item in recent
            ],
        )

    def visualization_series(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "species_trend": [dict(item) for item in SPECIES_TREND],
            "temperature_ph": [dict(item) for item in TEMPERATURE_PH],
        }
