"""Explicit run context shared by every component."""

from __future__ import annotations

from dataclasses import dataclass

from storagegc.backend.blob_store import BlobStore
from storagegc.backend.record_store import RecordStore
from storagegc.config import Settings
from storagegc.services.auth import AuthorizationGate


@dataclass
class GCContext:
    """Built once per run and handed to each component constructor."""

    settings: Settings
    blob_store: BlobStore
    record_store: RecordStore
    gate: AuthorizationGate
    auth_token: str | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        blob_store: BlobStore,
        record_store: RecordStore,
        auth_token: str | None = None,
    ) -> "GCContext":
        return cls(
            settings=settings,
            blob_store=blob_store,
            record_store=record_store,
            gate=AuthorizationGate(settings.upload_secret),
            auth_token=auth_token if auth_token is not None else settings.upload_secret,
        )

    async def aclose(self) -> None:
        await self.blob_store.aclose()
        await self.record_store.aclose()
