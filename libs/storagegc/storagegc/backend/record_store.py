"""Record store interface and the Convex-backed implementation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from storagegc.backend.convex_client import ConvexClient, with_upload_secret
from storagegc.exceptions import BackendError
from storagegc.models.records import RECORD_KINDS, EntityKind, ImageRecord

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    @abstractmethod
    async def list_with_image_refs(self, kind: EntityKind) -> list[ImageRecord]:
        """Return every live record of `kind` carrying a non-null image reference."""

    @abstractmethod
    async def update_image_ref(
        self,
        kind: EntityKind,
        entity_id: str,
        blob_id: str,
        auth_token: str | None,
    ) -> None:
        """Repoint the single image field of a record."""

    @abstractmethod
    async def update_image_refs(
        self,
        kind: EntityKind,
        entity_id: str,
        blob_ids: Sequence[str],
        auth_token: str | None,
    ) -> None:
        """Replace the ordered image list of a multi-image record."""

    async def aclose(self) -> None:
        return None


def project_record(kind: EntityKind, doc: dict[str, Any]) -> ImageRecord | None:
    """Project a raw document down to id + reference field(s)."""
    rk = RECORD_KINDS[kind]
    raw = doc.get(rk.field)
    if rk.multi:
        blob_ids = tuple(str(b) for b in (raw or []) if b)
    else:
        blob_ids = (str(raw),) if raw else ()
    if not blob_ids:
        return None
    name = doc.get("name")
    return ImageRecord(
        kind=kind,
        entity_id=str(doc.get("_id")),
        blob_ids=blob_ids,
        label=str(name) if name else None,
    )


class ConvexRecordStore(RecordStore):
    def __init__(self, client: ConvexClient) -> None:
        self.client = client

    async def list_with_image_refs(self, kind: EntityKind) -> list[ImageRecord]:
        rk = RECORD_KINDS[kind]
        path = f"{rk.table}:getAllWithImages"
        docs = await self.client.query(path, {})
        if not isinstance(docs, list):
            raise BackendError(path, f"unexpected value: {type(docs).__name__}")
        records: list[ImageRecord] = []
        for doc in docs:
            if not isinstance(doc, dict):
                continue
            record = project_record(kind, doc)
            if record is not None:
                records.append(record)
        logger.debug("convex records listed (table=%s, with_images=%d)", rk.table, len(records))
        return records

    async def update_image_ref(
        self,
        kind: EntityKind,
        entity_id: str,
        blob_id: str,
        auth_token: str | None,
    ) -> None:
        rk = RECORD_KINDS[kind]
        if rk.multi:
            raise ValueError(f"{rk.table} stores a list of images; use update_image_refs")
        await self.client.mutation(
            f"{rk.table}:updateImage",
            with_upload_secret({rk.id_arg: entity_id, "storageId": blob_id}, auth_token),
        )

    async def update_image_refs(
        self,
        kind: EntityKind,
        entity_id: str,
        blob_ids: Sequence[str],
        auth_token: str | None,
    ) -> None:
        rk = RECORD_KINDS[kind]
        if not rk.multi:
            raise ValueError(f"{rk.table} stores a single image; use update_image_ref")
        if len(blob_ids) > rk.max_refs:
            raise ValueError(f"Maximum {rk.max_refs} images allowed per {kind.value}")
        await self.client.mutation(
            f"{rk.table}:updateImages",
            with_upload_secret({rk.id_arg: entity_id, rk.field: list(blob_ids)}, auth_token),
        )

    async def aclose(self) -> None:
        await self.client.aclose()
