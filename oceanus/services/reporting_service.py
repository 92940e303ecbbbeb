from __future__ import annotations

import logging

from sqlmodel import Session, col, select

from oceanus.domain.errors import ValidationError
from oceanus.domain.models import Report, ReportCreate, ReportRead, ReportStatus, ReportTypeRead
from oceanus.infra.db import get_engine
from oceanus.infra.events import event_bus

logger = logging.getLogger(__name__)

REPORT_TYPES: tuple[ReportTypeRead, ...] = (
    ReportTypeRead(
        id="species-analysis",
        name="Species Analysis",
        description="Comprehensive analysis of species distribution and abundance",
    ),
    ReportTypeRead(
        id="biodiversity",
        name="Biodiversity Report",
        description="Assessment of biodiversity indices and ecosystem health",
    ),
    ReportTypeRead(
        id="environmental",
        name="Environmental Report",
        description="Environmental conditions and oceanographic parameters",
    ),
    ReportTypeRead(
        id="custom",
        name="Custom Report",
        description="Build a custom report with selected datasets and parameters",
    ),
)
REPORT_TYPES_BY_ID = {item.id: item for item in REPORT_TYPES}
GENERATED_REPORT_SIZE = "2.1 MB"


def _type_name(type_id: str) -> str:
    item = REPORT_TYPES_BY_ID.get(type_id)
    return item.name if item is not None else "Custom Report"


class ReportingService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def report_types(self) -> list[ReportTypeRead]:
        return list(REPORT_TYPES)

    def list_reports(self) -> list[ReportRead]:
        with self._session() as session:
            rows = list(session.exec(select(Report).order_by(col(Report.generated_at).desc())).all())
        return [ReportRead.from_record(item, _type_name(item.report_type)) for item in rows]

    def generate(self, payload: ReportCreate, created_by: str) -> ReportRead:
        if not payload.type or not payload.title:
            raise ValidationError("Please select a report type and enter a title.")
        if payload.type not in REPORT_TYPES_BY_ID:
            raise ValidationError(f"unknown report type: {payload.type}")

        report = Report(
            title=payload.title,
            report_type=payload.type,
            datasets=list(dict.fromkeys(payload.datasets)),
            format=payload.format,
            status=ReportStatus.COMPLETED,
            size=GENERATED_REPORT_SIZE,
            created_by=created_by,
        )
        with self._session() as session:
            session.add(report)
            session.commit()
            session.refresh(report)

        event_bus.publish_dict(
            "report.generated",
            {"report_id": report.id, "type": report.report_type, "format": str(report.format)},
            actor_id=created_by,
        )
        logger.info("report %s generated by %s", report.id, created_by)
        return ReportRead.from_record(report, _type_name(report.report_type))
