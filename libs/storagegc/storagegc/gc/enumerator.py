"""Storage enumeration: every blob id currently held by the store."""

from __future__ import annotations

import logging

from storagegc.backend.pagination import iter_blob_pages
from storagegc.exceptions import EnumerationError
from storagegc.services.context import GCContext

logger = logging.getLogger(__name__)


class StorageEnumerator:
    def __init__(self, ctx: GCContext) -> None:
        self.ctx = ctx
        self.page_size = int(ctx.settings.gc.page_size)

    async def list_all_blob_ids(self) -> list[str]:
        """Return all blob ids in ascending order, or raise EnumerationError.

        A listing either completes or fails; partial results are discarded.
        """
        logger.info("fetching all storage files")
        blob_ids: list[str] = []
        page_count = 0
        try:
            async for page in iter_blob_pages(self.ctx.blob_store, page_size=self.page_size):
                page_count += 1
                blob_ids.extend(page.items)
                logger.info(
                    "storage page fetched (page=%d, files=%d, total=%d)",
                    page_count,
                    len(page.items),
                    len(blob_ids),
                )
        except Exception as exc:
            raise EnumerationError(f"listing storage failed on page {page_count + 1}: {exc}") from exc

        logger.info("found %d total storage files", len(blob_ids))
        return blob_ids
