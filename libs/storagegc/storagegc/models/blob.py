"""Blob store models."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BlobMetadata:
    blob_id: str
    size: int | None = None
    content_type: str | None = None


@dataclass(frozen=True)
class BlobPage:
    """One page of a cursor-based blob listing."""

    items: list[str]
    next_cursor: str | None
    has_more: bool


@dataclass(frozen=True)
class UploadTarget:
    """Opaque handle returned by the store for a single upload."""

    url: str


@dataclass(frozen=True)
class DanglingBlob:
    """A stored blob with no live referencing record at scan time."""

    blob_id: str
    size: int | None = None
    content_type: str | None = None


@dataclass
class StorageStats:
    total_files: int = 0
    total_size: int = 0
    content_types: dict[str, int] = field(default_factory=dict)

    @property
    def total_size_mb(self) -> float:
        return round(self.total_size / 1024 / 1024, 2)
