"""Data models."""

from storagegc.models.blob import BlobMetadata, BlobPage, DanglingBlob, StorageStats, UploadTarget
from storagegc.models.records import (
    OPTIMIZE_ORDER,
    RECORD_KINDS,
    EntityKind,
    ImageRecord,
    ImageReference,
    RecordKind,
)
from storagegc.models.results import (
    BlobState,
    DeletionReport,
    DeletionResult,
    DryRunReport,
    OptimizationOutcome,
    OptimizationStats,
    SweepOutcome,
    SweepStatus,
)

__all__ = [
    "BlobMetadata",
    "BlobPage",
    "BlobState",
    "DanglingBlob",
    "DeletionReport",
    "DeletionResult",
    "DryRunReport",
    "EntityKind",
    "ImageRecord",
    "ImageReference",
    "OPTIMIZE_ORDER",
    "OptimizationOutcome",
    "OptimizationStats",
    "RECORD_KINDS",
    "RecordKind",
    "StorageStats",
    "SweepOutcome",
    "SweepStatus",
    "UploadTarget",
]
