"""In-memory backend for development and tests."""

from __future__ import annotations

import itertools
from collections.abc import Sequence
from dataclasses import dataclass, field
from uuid import uuid4

from storagegc.backend.blob_store import BlobStore
from storagegc.backend.record_store import RecordStore
from storagegc.exceptions import DownloadError, PerItemDeletionError, UploadError
from storagegc.models.blob import BlobMetadata, BlobPage, StorageStats, UploadTarget
from storagegc.models.records import RECORD_KINDS, EntityKind, ImageRecord
from storagegc.services.auth import AuthorizationGate

_URL_PREFIX = "memory://blobs/"
_UPLOAD_PREFIX = "memory://upload/"


@dataclass
class StoredBlob:
    data: bytes
    content_type: str | None = None


class InMemoryBlobStore(BlobStore):
    """Blob store held in a dict; ids list in ascending order like the real store."""

    def __init__(self, gate: AuthorizationGate | None = None) -> None:
        self.gate = gate or AuthorizationGate(None)
        self.blobs: dict[str, StoredBlob] = {}
        self.pending_uploads: set[str] = set()
        self._ids = itertools.count(1)

    def put(self, data: bytes, content_type: str | None = None, *, blob_id: str | None = None) -> str:
        if blob_id is None:
            blob_id = f"kg{next(self._ids):08d}"
            while blob_id in self.blobs:
                blob_id = f"kg{next(self._ids):08d}"
        self.blobs[blob_id] = StoredBlob(data=bytes(data), content_type=content_type)
        return blob_id

    async def generate_upload_target(self, auth_token: str | None) -> UploadTarget:
        self.gate.check(auth_token)
        token = uuid4().hex
        self.pending_uploads.add(token)
        return UploadTarget(url=f"{_UPLOAD_PREFIX}{token}")

    async def upload_bytes(self, target: UploadTarget, data: bytes, content_type: str) -> str:
        token = target.url.removeprefix(_UPLOAD_PREFIX)
        if token not in self.pending_uploads:
            raise UploadError("<new>", f"unknown or used upload target: {target.url}")
        self.pending_uploads.discard(token)
        return self.put(data, content_type)

    async def fetch_url(self, blob_id: str) -> str | None:
        if blob_id not in self.blobs:
            return None
        return f"{_URL_PREFIX}{blob_id}"

    async def download(self, url: str) -> bytes:
        blob_id = url.removeprefix(_URL_PREFIX)
        stored = self.blobs.get(blob_id)
        if stored is None:
            raise DownloadError(blob_id, f"not found: {url}")
        return stored.data

    async def delete_blob(self, blob_id: str, auth_token: str | None) -> None:
        self.gate.check(auth_token)
        if self.blobs.pop(blob_id, None) is None:
            raise PerItemDeletionError(blob_id, "storage file not found")

    async def list_blobs(self, cursor: str | None, limit: int) -> BlobPage:
        ordered = sorted(self.blobs)
        if cursor:
            ordered = [b for b in ordered if b > cursor]
        # One extra item tells whether another page exists.
        taken = ordered[: limit + 1]
        has_more = len(taken) > limit
        items = taken[:limit] if has_more else taken
        return BlobPage(items=items, next_cursor=items[-1] if has_more else None, has_more=has_more)

    async def get_metadata(self, blob_ids: Sequence[str]) -> dict[str, BlobMetadata | None]:
        out: dict[str, BlobMetadata | None] = {}
        for blob_id in blob_ids:
            stored = self.blobs.get(blob_id)
            out[blob_id] = (
                BlobMetadata(blob_id=blob_id, size=len(stored.data), content_type=stored.content_type)
                if stored is not None
                else None
            )
        return out

    async def storage_stats(self) -> StorageStats:
        stats = StorageStats()
        for stored in self.blobs.values():
            stats.total_files += 1
            stats.total_size += len(stored.data)
            if stored.content_type:
                stats.content_types[stored.content_type] = stats.content_types.get(stored.content_type, 0) + 1
        return stats


@dataclass
class _Row:
    entity_id: str
    blob_ids: list[str] = field(default_factory=list)
    name: str | None = None


class InMemoryRecordStore(RecordStore):
    def __init__(self, gate: AuthorizationGate | None = None) -> None:
        self.gate = gate or AuthorizationGate(None)
        self.tables: dict[EntityKind, dict[str, _Row]] = {kind: {} for kind in RECORD_KINDS}

    def add(
        self,
        kind: EntityKind,
        entity_id: str,
        blob_ids: Sequence[str] | str | None,
        *,
        name: str | None = None,
    ) -> None:
        if blob_ids is None:
            ids: list[str] = []
        elif isinstance(blob_ids, str):
            ids = [blob_ids]
        else:
            ids = [b for b in blob_ids if b]
        rk = RECORD_KINDS[kind]
        if len(ids) > rk.max_refs:
            raise ValueError(f"Maximum {rk.max_refs} images allowed per {kind.value}")
        self.tables[kind][entity_id] = _Row(entity_id=entity_id, blob_ids=ids, name=name)

    def remove(self, kind: EntityKind, entity_id: str) -> None:
        self.tables[kind].pop(entity_id, None)

    def blob_ids_of(self, kind: EntityKind, entity_id: str) -> list[str]:
        return list(self.tables[kind][entity_id].blob_ids)

    async def list_with_image_refs(self, kind: EntityKind) -> list[ImageRecord]:
        return [
            ImageRecord(kind=kind, entity_id=row.entity_id, blob_ids=tuple(row.blob_ids), label=row.name)
            for row in self.tables[kind].values()
            if row.blob_ids
        ]

    def _row(self, kind: EntityKind, entity_id: str) -> _Row:
        row = self.tables[kind].get(entity_id)
        if row is None:
            raise KeyError(f"{RECORD_KINDS[kind].table} {entity_id} not found")
        return row

    async def update_image_ref(
        self,
        kind: EntityKind,
        entity_id: str,
        blob_id: str,
        auth_token: str | None,
    ) -> None:
        self.gate.check(auth_token)
        if RECORD_KINDS[kind].multi:
            raise ValueError(f"{RECORD_KINDS[kind].table} stores a list of images; use update_image_refs")
        self._row(kind, entity_id).blob_ids = [blob_id]

    async def update_image_refs(
        self,
        kind: EntityKind,
        entity_id: str,
        blob_ids: Sequence[str],
        auth_token: str | None,
    ) -> None:
        self.gate.check(auth_token)
        rk = RECORD_KINDS[kind]
        if not rk.multi:
            raise ValueError(f"{rk.table} stores a single image; use update_image_ref")
        if len(blob_ids) > rk.max_refs:
            raise ValueError(f"Maximum {rk.max_refs} images allowed per {kind.value}")
        self._row(kind, entity_id).blob_ids = list(blob_ids)
