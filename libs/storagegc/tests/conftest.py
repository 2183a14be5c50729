from __future__ import annotations

import io
from collections.abc import Callable

import pytest
from PIL import Image

from storagegc.backend.memory import InMemoryBlobStore, InMemoryRecordStore
from storagegc.config import ConvexConfig, GCConfig, OptimizerConfig, Settings
from storagegc.services.auth import AuthorizationGate
from storagegc.services.context import GCContext

SECRET = "s3cret"


def image_bytes(fmt: str, *, size: tuple[int, int] = (32, 24), mode: str = "RGB") -> bytes:
    colors = {"RGBA": (200, 120, 40, 255), "RGB": (200, 120, 40)}
    img = Image.new(mode, size, colors.get(mode, 128))
    out = io.BytesIO()
    img.save(out, format=fmt)
    return out.getvalue()


def make_settings(tmp_path, *, secret: str | None = SECRET, page_size: int = 8000) -> Settings:
    return Settings(
        backend="memory",
        log_dir=str(tmp_path / "logs"),
        convex=ConvexConfig(url="https://example.convex.cloud", upload_secret=secret or ""),
        gc=GCConfig(page_size=page_size, delete_batch_size=10),
        optimizer=OptimizerConfig(delay_s=0),
    )


def make_ctx(
    settings: Settings,
    blob_store: InMemoryBlobStore | None = None,
    record_store: InMemoryRecordStore | None = None,
) -> GCContext:
    gate = AuthorizationGate(settings.upload_secret)
    return GCContext.from_settings(
        settings,
        blob_store=blob_store or InMemoryBlobStore(gate),
        record_store=record_store or InMemoryRecordStore(gate),
    )


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture()
def gate(settings: Settings) -> AuthorizationGate:
    return AuthorizationGate(settings.upload_secret)


@pytest.fixture()
def blob_store(gate: AuthorizationGate) -> InMemoryBlobStore:
    return InMemoryBlobStore(gate)


@pytest.fixture()
def record_store(gate: AuthorizationGate) -> InMemoryRecordStore:
    return InMemoryRecordStore(gate)


@pytest.fixture()
def ctx(settings: Settings, blob_store: InMemoryBlobStore, record_store: InMemoryRecordStore) -> GCContext:
    return make_ctx(settings, blob_store, record_store)


@pytest.fixture()
def png() -> Callable[..., bytes]:
    return lambda **kw: image_bytes("PNG", **kw)
