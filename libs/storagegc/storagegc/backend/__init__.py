"""Blob and record store backends."""

from storagegc.backend.blob_store import BlobStore, ConvexBlobStore
from storagegc.backend.convex_client import ConvexClient
from storagegc.backend.memory import InMemoryBlobStore, InMemoryRecordStore
from storagegc.backend.pagination import iter_blob_pages
from storagegc.backend.record_store import ConvexRecordStore, RecordStore
from storagegc.config import Settings
from storagegc.exceptions import ConfigurationError
from storagegc.services.auth import AuthorizationGate


def get_backend(settings: Settings) -> tuple[BlobStore, RecordStore]:
    backend = str(getattr(settings, "backend", "convex") or "convex").strip().lower()
    if backend == "memory":
        gate = AuthorizationGate(settings.upload_secret)
        return InMemoryBlobStore(gate), InMemoryRecordStore(gate)
    if backend == "convex":
        client = ConvexClient(
            settings.require_convex_url(),
            timeout=float(settings.convex.timeout_s),
            max_read_retries=int(settings.convex.max_read_retries),
        )
        blob_store = ConvexBlobStore(client, download_timeout_s=float(settings.optimizer.download_timeout_s))
        return blob_store, ConvexRecordStore(client)
    raise ConfigurationError(f"Unknown backend: {backend!r} (expected: convex/memory)")


__all__ = [
    "BlobStore",
    "ConvexBlobStore",
    "ConvexClient",
    "ConvexRecordStore",
    "InMemoryBlobStore",
    "InMemoryRecordStore",
    "RecordStore",
    "get_backend",
    "iter_blob_pages",
]
