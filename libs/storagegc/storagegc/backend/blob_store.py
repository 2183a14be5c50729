"""Blob store interface and the Convex-backed implementation."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

import httpx

from storagegc.backend.convex_client import ConvexClient, with_upload_secret
from storagegc.exceptions import BackendError, PerItemDeletionError, UnauthorizedError, UploadError
from storagegc.models.blob import BlobMetadata, BlobPage, StorageStats, UploadTarget
from storagegc.models.results import DeletionResult

logger = logging.getLogger(__name__)


class BlobStore(ABC):
    @abstractmethod
    async def generate_upload_target(self, auth_token: str | None) -> UploadTarget:
        """Reserve a one-shot upload target."""

    @abstractmethod
    async def upload_bytes(self, target: UploadTarget, data: bytes, content_type: str) -> str:
        """Upload bytes to a target and return the new blob id."""

    @abstractmethod
    async def fetch_url(self, blob_id: str) -> str | None:
        """Return a fetchable URL for the blob, or None if it does not exist."""

    @abstractmethod
    async def download(self, url: str) -> bytes:
        """Download the full contents behind a URL from `fetch_url`."""

    @abstractmethod
    async def delete_blob(self, blob_id: str, auth_token: str | None) -> None:
        """Delete one blob. Raises PerItemDeletionError on failure."""

    @abstractmethod
    async def list_blobs(self, cursor: str | None, limit: int) -> BlobPage:
        """Return one page of blob ids in ascending id order after `cursor`."""

    @abstractmethod
    async def get_metadata(self, blob_ids: Sequence[str]) -> dict[str, BlobMetadata | None]:
        """Fetch size/content type for many blobs in one call."""

    @abstractmethod
    async def storage_stats(self) -> StorageStats:
        """Aggregate file count, size and content type histogram."""

    async def delete_blobs(self, blob_ids: Sequence[str], auth_token: str | None) -> list[DeletionResult]:
        """Delete one batch; each id is an independent call awaited together."""

        async def _one(blob_id: str) -> DeletionResult:
            try:
                await self.delete_blob(blob_id, auth_token)
            except UnauthorizedError:
                raise
            except Exception as exc:
                return DeletionResult(blob_id=blob_id, success=False, error=str(exc))
            return DeletionResult(blob_id=blob_id, success=True)

        return list(await asyncio.gather(*(_one(b) for b in blob_ids)))

    async def aclose(self) -> None:
        return None


def _as_int(value: object) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)
    return None


class ConvexBlobStore(BlobStore):
    """Blob store backed by the deployment's `_storage` system table."""

    def __init__(self, client: ConvexClient, *, download_timeout_s: float | None = None) -> None:
        self.client = client
        self.download_timeout_s = download_timeout_s

    async def generate_upload_target(self, auth_token: str | None) -> UploadTarget:
        url = await self.client.mutation("http:generateUploadUrl", with_upload_secret({}, auth_token))
        if not url:
            raise BackendError("http:generateUploadUrl", "no upload url returned")
        return UploadTarget(url=str(url))

    async def upload_bytes(self, target: UploadTarget, data: bytes, content_type: str) -> str:
        try:
            body = await self.client.post_bytes(target.url, data, content_type=content_type)
        except (httpx.HTTPError, ValueError) as exc:
            raise UploadError("<new>", f"upload failed: {exc}") from exc
        storage_id = body.get("storageId") if isinstance(body, dict) else None
        if not storage_id:
            raise UploadError("<new>", f"upload response missing storageId: {body!r}")
        return str(storage_id)

    async def fetch_url(self, blob_id: str) -> str | None:
        url = await self.client.query("http:getStorageUrl", {"storageId": blob_id})
        return str(url) if url else None

    async def download(self, url: str) -> bytes:
        return await self.client.get_bytes(url, timeout=self.download_timeout_s)

    async def delete_blob(self, blob_id: str, auth_token: str | None) -> None:
        result = await self.client.mutation(
            "storage:deleteStorageFile",
            with_upload_secret({"storageId": blob_id}, auth_token),
        )
        if not isinstance(result, dict) or not result.get("success"):
            error = result.get("error") if isinstance(result, dict) else result
            raise PerItemDeletionError(blob_id, str(error or "delete failed"))

    async def delete_blobs(self, blob_ids: Sequence[str], auth_token: str | None) -> list[DeletionResult]:
        logger.debug("convex delete batch (size=%d)", len(blob_ids))
        result = await self.client.mutation(
            "storage:deleteStorageFiles",
            with_upload_secret({"storageIds": list(blob_ids)}, auth_token),
        )
        rows: list[dict[str, Any]] = list((result or {}).get("results") or [])
        by_id = {str(r.get("storageId")): r for r in rows if isinstance(r, dict)}
        out: list[DeletionResult] = []
        for blob_id in blob_ids:
            row = by_id.get(blob_id)
            if row is None:
                out.append(DeletionResult(blob_id=blob_id, success=False, error="missing from batch response"))
            elif row.get("success"):
                out.append(DeletionResult(blob_id=blob_id, success=True))
            else:
                out.append(DeletionResult(blob_id=blob_id, success=False, error=str(row.get("error") or "")))
        return out

    async def list_blobs(self, cursor: str | None, limit: int) -> BlobPage:
        args: dict[str, Any] = {"limit": int(limit)}
        if cursor:
            args["cursor"] = cursor
        value = await self.client.query("storage:getAllStorageFiles", args)
        if not isinstance(value, dict):
            raise BackendError("storage:getAllStorageFiles", f"unexpected value: {value!r}")
        return BlobPage(
            items=[str(f) for f in value.get("files") or []],
            next_cursor=(str(value["nextCursor"]) if value.get("nextCursor") else None),
            has_more=bool(value.get("hasMore")),
        )

    async def get_metadata(self, blob_ids: Sequence[str]) -> dict[str, BlobMetadata | None]:
        value = await self.client.query("storage:getStorageMetadata", {"storageIds": list(blob_ids)})
        out: dict[str, BlobMetadata | None] = {}
        for row in value or []:
            blob_id = str(row.get("storageId"))
            meta = row.get("metadata")
            if not isinstance(meta, dict):
                out[blob_id] = None
                continue
            content_type = meta.get("contentType")
            out[blob_id] = BlobMetadata(
                blob_id=blob_id,
                size=_as_int(meta.get("size")),
                content_type=str(content_type) if content_type else None,
            )
        return out

    async def storage_stats(self) -> StorageStats:
        value = await self.client.query("storage:getStorageStats", {})
        value = value if isinstance(value, dict) else {}
        return StorageStats(
            total_files=_as_int(value.get("totalFiles")) or 0,
            total_size=_as_int(value.get("totalSize")) or 0,
            content_types={str(k): int(v) for k, v in (value.get("contentTypes") or {}).items()},
        )

    async def aclose(self) -> None:
        await self.client.aclose()
