from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from pydantic.alias_generators import to_camel
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from oceanus.domain.state_machine import DatasetStatus


def now_utc() -> datetime:
    return datetime.now(UTC)


class Role(StrEnum):
    ADMIN = "admin"
    RESEARCHER = "researcher"
    POLICY_USER = "policy_user"
    GUEST = "guest"


class AiAnalysisKind(StrEnum):
    SPECIES_PREDICT = "species_predict"
    DNA_MATCH = "dna_match"


class ReportFormat(StrEnum):
    PDF = "pdf"
    CSV = "csv"
    EXCEL = "excel"


class ReportStatus(StrEnum):
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class EventRecord(SQLModel, table=True):
    __tablename__ = "events"

    event_id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    event_type: str = Field(index=True)
    ts: datetime = Field(default_factory=now_utc, index=True)
    actor_id: str | None = Field(default=None, index=True)
    correlation_id: str | None = Field(default=None, index=True)
    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    actor_id: str | None = Field(default=None, index=True)
    actor_role: str | None = None
    action: str
    resource: str
    method: str
    status_code: int
    ts: datetime = Field(default_factory=now_utc, index=True)
    detail: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    name: str
    role: Role = Field(index=True)
    last_login_at: datetime | None = None
    created_at: datetime = Field(default_factory=now_utc, index=True)


class Dataset(SQLModel, table=True):
    __tablename__ = "datasets"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str = Field(index=True)
    type: str = Field(index=True)
    location: str
    size: str = "0 MB"
    status: DatasetStatus = Field(default=DatasetStatus.PENDING, index=True)
    dataset_metadata: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    created_at: datetime = Field(default_factory=now_utc, index=True)
    owner_id: str | None = Field(default=None, index=True)


class AiAnalysis(SQLModel, table=True):
    __tablename__ = "ai_analyses"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    kind: AiAnalysisKind = Field(index=True)
    user_id: str | None = Field(default=None, index=True)
    summary: str
    result: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    created_at: datetime = Field(default_factory=now_utc, index=True)


class Report(SQLModel, table=True):
    __tablename__ = "reports"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    title: str
    report_type: str = Field(index=True)
    datasets: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )
    format: ReportFormat = ReportFormat.PDF
    status: ReportStatus = ReportStatus.COMPLETED
    size: str = "2.1 MB"
    created_by: str | None = Field(default=None, index=True)
    generated_at: datetime = Field(default_factory=now_utc, index=True)


class EventEnvelope(BaseModel):
    event_id: str = PydanticField(default_factory=lambda: str(uuid4()))
    event_type: str
    ts: datetime = PydanticField(default_factory=now_utc)
    actor_id: str | None = None
    correlation_id: str | None = None
    payload: dict[str, Any]


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )


class LoginRequest(ApiModel):
    email: str = PydanticField(min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = PydanticField(min_length=1)
    remember_me: bool = False


class AuthUser(ApiModel):
    id: str
    email: str
    name: str
    role: str


class LoginResponse(ApiModel):
    token: str
    role: str
    user: AuthUser
    expires_in: int


class RefreshResponse(ApiModel):
    token: str
    expires_in: int


class UserAdminRead(AuthUser):
    last_login_at: datetime | None
    created_at: datetime


@dataclass(frozen=True)
class SessionState:
    token: str | None = None
    user: AuthUser | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None and self.user is not None

    @property
    def role(self) -> str | None:
        return self.user.role if self.user is not None else None


class DatasetRead(ApiModel):
    id: str
    name: str
    type: str
    location: str
    size: str
    status: DatasetStatus
    metadata: dict[str, Any]
    created_at: datetime
    owner_id: str | None

    @classmethod
    def from_record(cls, dataset: Dataset) -> DatasetRead:
        return cls(
            id=dataset.id,
            name=dataset.name,
            type=dataset.type,
            location=dataset.location,
            size=dataset.size,
            status=dataset.status,
            metadata=dict(dataset.dataset_metadata or {}),
            created_at=dataset.created_at,
            owner_id=dataset.owner_id,
        )


class RecentUploadRead(ApiModel):
    id: str
    name: str
    type: str
    location: str
    date: datetime
    status: DatasetStatus


class DashboardSummaryRead(ApiModel):
    datasets: int
    sensors: int
    edna_samples: int
    ai_analyses: int
    recent_uploads: list[RecentUploadRead]


class UploadRequest(ApiModel):
    name: str = PydanticField(min_length=1, max_length=200)
    type: str = PydanticField(min_length=1, max_length=64)
    location: str = PydanticField(min_length=1, max_length=200)
    size: str | None = None
    metadata: dict[str, Any] = PydanticField(default_factory=dict)


class UploadedDatasetRead(ApiModel):
    id: str
    name: str
    status: DatasetStatus


class UploadResponse(ApiModel):
    message: str
    dataset: UploadedDatasetRead


class SpeciesCandidate(ApiModel):
    species: str
    common_name: str
    confidence: float


class SpeciesPrediction(SpeciesCandidate):
    alternates: list[SpeciesCandidate]


class SpeciesPredictResponse(ApiModel):
    prediction: SpeciesPrediction


class DnaMatchRequest(ApiModel):
    sequence: str | None = None


class DnaMatch(ApiModel):
    species: str
    common_name: str
    similarity: float


class DnaMatchResponse(ApiModel):
    matches: list[DnaMatch]


class ReportTypeRead(ApiModel):
    id: str
    name: str
    description: str


class ReportCreate(ApiModel):
    type: str | None = None
    title: str | None = None
    datasets: list[str] = PydanticField(default_factory=list)
    format: ReportFormat = ReportFormat.PDF


class ReportRead(ApiModel):
    id: str
    title: str
    type: str
    datasets: list[str]
    format: ReportFormat
    status: ReportStatus
    size: str
    created_by: str | None
    generated_at: datetime

    @classmethod
    def from_record(cls, report: Report, type_name: str) -> ReportRead:
        return cls(
            id=report.id,
            title=report.title,
            type=type_name,
            datasets=list(report.datasets),
            format=report.format,
            status=report.status,
            size=report.size,
            created_by=report.created_by,
            generated_at=report.generated_at,
        )


class AuditLogRead(ApiModel):
    id: str
    actor_id: str | None
    actor_role: str | None
    action: str
    resource: str
    method: str
    status_code: int
    ts: datetime
