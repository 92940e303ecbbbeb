from __future__ import annotations

import logging
import os

from sqlmodel import Session, col, select

from oceanus.domain.errors import NotFoundError, ValidationError
from oceanus.domain.models import Dataset, DatasetRead, UploadRequest
from oceanus.domain.state_machine import DatasetStatus, can_transition
from oceanus.infra.db import get_engine
from oceanus.infra.events import event_bus
from oceanus.infra.jobs import DeferredJob, job_runner

logger = logging.getLogger(__name__)

DATASET_PROCESSING_DELAY_SECONDS = float(os.getenv("DATASET_PROCESSING_DELAY_SECONDS", "5"))

SEED_DATASETS: tuple[dict[str, object], ...] = (
    {
        "name": "Pacific Kelp Survey 2024",
        "type": "Ocean Data",
        "location": "California Coast",
        "size": "2.4 GB",
        "status": DatasetStatus.PROCESSED,
        "dataset_metadata": {"depth": "5-30m", "samples": 1240},
    },
    {
        "name": "Coral Reef eDNA Samples",
        "type": "eDNA",
        "location": "Great Barrier Reef",
        "size": "856 MB",
        "status": DatasetStatus.PROCESSING,
        "dataset_metadata": {"markers": ["COI", "12S"]},
    },
    {
        "name": "Salmon Migration Data",
        "type": "Fish Data",
        "location": "Alaska Peninsula",
        "size": "1.2 GB",
        "status": DatasetStatus.PROCESSED,
        "dataset_metadata": {"tagged_individuals": 312},
    },
    {
        "name": "Otolith Growth Rings",
        "type": "Otolith Data",
        "location": "Pacific Ocean",
        "size": "340 MB",
        "status": DatasetStatus.PENDING,
        "dataset_metadata": {},
    },
)


class DatasetService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def ensure_seed_datasets(self, owner_id: str | None = None) -> int:
        with self._session() as session:
            if session.exec(select(Dataset)).first() is not None:
                return 0
            for row in SEED_DATASETS:
                session.add(Dataset(owner_id=owner_id, **row))
            session.commit()
        logger.info("seeded %d dataset(s)", len(SEED_DATASETS))
        return len(SEED_DATASETS)

    def list_datasets(
        self,
        *,
        search: str | None = None,
        dataset_type: str | None = None,
        status: DatasetStatus | None = None,
        location: str | None = None,
    ) -> list[DatasetRead]:
        with self._session() as session:
            statement = select(Dataset).order_by(col(Dataset.created_at))
            if dataset_type:
                statement = statement.where(Dataset.type == dataset_type)
            if status is not None:
                statement = statement.where(Dataset.status == status)
            rows = list(session.exec(statement).all())
        if search:
            needle = search.lower()
            rows = [item for item in rows if needle in item.name.lower() or needle in item.location.lower()]
        if location:
            rows = [item for item in rows if location in item.location]
        return [DatasetRead.from_record(item) for item in rows]

    def count(self) -> int:
        with self._session() as session:
            return len(session.exec(select(Dataset.id)).all())

    def recent(self, limit: int = 5) -> list[Dataset]:
        with self._session() as session:
            rows = list(session.exec(select(Dataset).order_by(col(Dataset.created_at))).all())
        return rows[-limit:]

    def get_dataset(self, dataset_id: str) -> DatasetRead:
        with self._session() as session:
            dataset = session.get(Dataset, dataset_id)
        if dataset is None:
            raise NotFoundError("Dataset not found")
        return DatasetRead.from_record(dataset)

    def create_upload(self, payload: UploadRequest, owner_id: str) -> Dataset:
        if not payload.name or not payload.location:
            raise ValidationError("name and location are required")
        dataset = Dataset(
            name=payload.name,
            type=payload.type,
            location=payload.location,
            size=payload.size or "0 MB",
            status=DatasetStatus.PENDING,
            dataset_metadata=payload.metadata,
            owner_id=owner_id,
        )
        with self._session() as session:
            session.add(dataset)
            session.commit()
            session.refresh(dataset)

        event_bus.publish_dict(
            "dataset.uploaded",
            {"dataset_id": dataset.id, "name": dataset.name, "type": dataset.type},
            actor_id=owner_id,
        )
        self.schedule_processing(dataset.id)
        logger.info("dataset %s uploaded by %s", dataset.id, owner_id)
        return dataset

    def schedule_processing(self, dataset_id: str) -> DeferredJob:
        return job_runner.schedule(
            dataset_id,
            lambda: self.mark_processed(dataset_id),
            delay_seconds=DATASET_PROCESSING_DELAY_SECONDS,
        )

    def mark_processed(self, dataset_id: str) -> Dataset:
        """Move a dataset to ``processed``; repeated calls leave it unchanged."""
        with self._session() as session:
            dataset = session.get(Dataset, dataset_id)
            if dataset is None:
                raise NotFoundError("Dataset not found")
            if dataset.status == DatasetStatus.PROCESSED:
                return dataset
            if not can_transition(dataset.status, DatasetStatus.PROCESSED):
                raise ValidationError(f"cannot process dataset in status {dataset.status}")
            dataset.status = DatasetStatus.PROCESSED
            session.add(dataset)
            session.commit()
            session.refresh(dataset)

        event_bus.publish_dict(
            "dataset.processed",
            {"dataset_id": dataset.id, "status": str(DatasetStatus.PROCESSED)},
            actor_id=dataset.owner_id,
        )
        logger.info("dataset %s processed", dataset.id)
        return dataset
