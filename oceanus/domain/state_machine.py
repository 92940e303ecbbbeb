from __future__ import annotations

from enum import StrEnum


class DatasetStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[DatasetStatus, set[DatasetStatus]] = {
    DatasetStatus.PENDING: {
        DatasetStatus.PROCESSING,
        DatasetStatus.PROCESSED,
        DatasetStatus.FAILED,
    },
    DatasetStatus.PROCESSING: {DatasetStatus.PROCESSED, DatasetStatus.FAILED},
    DatasetStatus.PROCESSED: set(),
    DatasetStatus.FAILED: set(),
}


def can_transition(source: DatasetStatus, target: DatasetStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(source, set())
