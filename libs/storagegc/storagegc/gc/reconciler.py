"""Dangling blob detection: enumerated blobs minus referenced blobs."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence

from storagegc.exceptions import MetadataFetchError
from storagegc.gc.enumerator import StorageEnumerator
from storagegc.gc.scanner import ReferenceScanner
from storagegc.models.blob import BlobMetadata, DanglingBlob
from storagegc.services.context import GCContext

logger = logging.getLogger(__name__)


def compute_dangling(enumerated: Sequence[str], referenced: Iterable[str]) -> list[str]:
    """Return ids of `enumerated` absent from `referenced`, keeping enumeration order."""
    ref_set = referenced if isinstance(referenced, (set, frozenset)) else set(referenced)
    seen: set[str] = set()
    out: list[str] = []
    for blob_id in enumerated:
        if blob_id in ref_set or blob_id in seen:
            continue
        seen.add(blob_id)
        out.append(blob_id)
    return out


class Reconciler:
    def __init__(
        self,
        ctx: GCContext,
        *,
        enumerator: StorageEnumerator | None = None,
        scanner: ReferenceScanner | None = None,
    ) -> None:
        self.ctx = ctx
        self.enumerator = enumerator or StorageEnumerator(ctx)
        self.scanner = scanner or ReferenceScanner(ctx)

    async def find_dangling(self) -> list[DanglingBlob]:
        """Build a fresh reference snapshot and return unreferenced blobs.

        EnumerationError and ScanError propagate; metadata failures degrade to
        id-only entries.
        """
        logger.info("starting dangling file detection")
        enumerated, referenced = await asyncio.gather(
            self.enumerator.list_all_blob_ids(),
            self.scanner.scan_references(),
        )

        dangling_ids = compute_dangling(enumerated, referenced)
        if not dangling_ids:
            return []

        logger.info("getting metadata for %d dangling files", len(dangling_ids))
        try:
            metadata = await self._fetch_metadata(dangling_ids)
        except MetadataFetchError as exc:
            logger.warning("could not get metadata, proceeding with basic info: %s", exc)
            return [DanglingBlob(blob_id=b) for b in dangling_ids]

        out: list[DanglingBlob] = []
        for blob_id in dangling_ids:
            meta = metadata.get(blob_id)
            if meta is None:
                out.append(DanglingBlob(blob_id=blob_id))
            else:
                out.append(DanglingBlob(blob_id=blob_id, size=meta.size, content_type=meta.content_type))
        return out

    async def _fetch_metadata(self, blob_ids: list[str]) -> dict[str, BlobMetadata | None]:
        try:
            return await self.ctx.blob_store.get_metadata(blob_ids)
        except Exception as exc:
            raise MetadataFetchError(str(exc)) from exc
