"""Reference scanning across every record kind that can point at a blob."""

from __future__ import annotations

import asyncio
import logging

from storagegc.exceptions import ScanError
from storagegc.models.records import RECORD_KINDS, EntityKind, ImageReference
from storagegc.services.context import GCContext

logger = logging.getLogger(__name__)


class ReferenceScanner:
    def __init__(self, ctx: GCContext) -> None:
        self.ctx = ctx

    async def _scan_kind(self, kind: EntityKind) -> list[ImageReference]:
        records = await self.ctx.record_store.list_with_image_refs(kind)
        refs: list[ImageReference] = []
        for record in records:
            refs.extend(record.references())
        logger.debug(
            "references scanned (table=%s, records=%d, refs=%d)",
            RECORD_KINDS[kind].table,
            len(records),
            len(refs),
        )
        return refs

    async def scan_reference_tuples(self) -> list[ImageReference]:
        """Read all record kinds concurrently; any failed read fails the scan."""
        logger.info("scanning database for image references")
        kinds = list(RECORD_KINDS)
        results = await asyncio.gather(*(self._scan_kind(k) for k in kinds), return_exceptions=True)

        failed: list[str] = []
        refs: list[ImageReference] = []
        for kind, result in zip(kinds, results):
            if isinstance(result, BaseException):
                logger.error("reference read failed (table=%s): %s", RECORD_KINDS[kind].table, result)
                failed.append(RECORD_KINDS[kind].table)
                continue
            refs.extend(result)

        if failed:
            # A partial reference set would flag live blobs as dangling.
            raise ScanError(f"reference scan failed for: {', '.join(failed)}", failed_kinds=failed)
        return refs

    async def scan_references(self) -> frozenset[str]:
        refs = await self.scan_reference_tuples()
        referenced = frozenset(ref.blob_id for ref in refs)
        logger.info("found %d references to %d distinct storage files", len(refs), len(referenced))
        return referenced
