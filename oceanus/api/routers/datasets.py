from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request

from oceanus.api.deps import get_current_claims, raise_http_error
from oceanus.domain.errors import NotFoundError, ValidationError
from oceanus.domain.models import DatasetRead, UploadedDatasetRead, UploadRequest, UploadResponse
from oceanus.domain.state_machine import DatasetStatus
from oceanus.infra.audit import set_audit_context
from oceanus.services.dataset_service import DatasetService

router = APIRouter()


def get_dataset_service() -> DatasetService:
    return DatasetService()


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
Service = Annotated[DatasetService, Depends(get_dataset_service)]


@router.get("/datasets", response_model=list[DatasetRead])
def list_datasets(
    service: Service,
    search: str | None = Query(default=None),
    dataset_type: str | None = Query(default=None, alias="type"),
    status: DatasetStatus | None = Query(default=None),
    location: str | None = Query(default=None),
) -> list[DatasetRead]:
    return service.list_datasets(
        search=search,
        dataset_type=dataset_type,
        status=status,
        location=location,
    )


@router.get("/datasets/{dataset_id}", response_model=DatasetRead)
def get_dataset(dataset_id: str, service: Service) -> DatasetRead:
    try:
        return service.get_dataset(dataset_id)
    except NotFoundError as exc:
        raise_http_error(exc)


@router.post("/upload", response_model=UploadResponse)
def upload_dataset(payload: UploadRequest, request: Request, claims: Claims, service: Service) -> UploadResponse:
    try:
        dataset = service.create_upload(payload, owner_id=claims["sub"])
    except ValidationError as exc:
        raise_http_error(exc)
    set_audit_context(
        request,
        action="dataset.upload",
        resource=f"dataset:{dataset.id}",
        detail={"dataset": {"id": dataset.id, "type": dataset.type}},
    )
    return UploadResponse(
        message="Upload successful",
        dataset=UploadedDatasetRead(id=dataset.id, name=dataset.name, status=dataset.status),
    )
