"""Cursor pagination over the blob listing."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from storagegc.config import MAX_PAGE_SIZE
from storagegc.exceptions import BackendError
from storagegc.models.blob import BlobPage

if TYPE_CHECKING:
    from storagegc.backend.blob_store import BlobStore

LIST_FUNCTION = "storage:getAllStorageFiles"


async def iter_blob_pages(store: "BlobStore", *, page_size: int = MAX_PAGE_SIZE) -> AsyncIterator[BlobPage]:
    """Iterate over `list_blobs` result pages.

    Each request depends on the previous page's cursor, so pages are fetched
    strictly one after another.
    """

    limit = max(1, min(int(page_size), MAX_PAGE_SIZE))
    cursor: str | None = None
    has_more = True
    while has_more:
        page = await store.list_blobs(cursor, limit)
        yield page

        has_more = page.has_more
        if has_more and not page.next_cursor:
            # A page that promises more must say where to continue.
            raise BackendError(LIST_FUNCTION, f"hasMore without nextCursor after cursor={cursor!r}")
        cursor = page.next_cursor
