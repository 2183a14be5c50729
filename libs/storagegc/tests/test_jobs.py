from __future__ import annotations

import argparse

import pytest
from conftest import image_bytes, make_ctx, make_settings

from storagegc.backend.memory import InMemoryBlobStore, InMemoryRecordStore
from storagegc.exceptions import ConfigurationError
from storagegc.jobs import cleanup, optimize
from storagegc.models.records import EntityKind
from storagegc.optimizer.codec import detect_format
from storagegc.services.auth import AuthorizationGate


def _populated(tmp_path):
    settings = make_settings(tmp_path)
    gate = AuthorizationGate(settings.upload_secret)
    blobs = InMemoryBlobStore(gate)
    records = InMemoryRecordStore(gate)
    live = blobs.put(image_bytes("PNG"), "image/png")
    orphan = blobs.put(b"orphan", "image/jpeg")
    records.add(EntityKind.CAFE, "c1", live)
    return make_ctx(settings, blobs, records), blobs, records, live, orphan


@pytest.mark.asyncio
async def test_cleanup_defaults_to_dry_run(tmp_path) -> None:
    ctx, blobs, _, live, orphan = _populated(tmp_path)

    code = await cleanup.run_cleanup(ctx, confirm=lambda _msg: pytest.fail("dry run must not prompt"))

    assert code == 0
    assert sorted(blobs.blobs) == sorted([live, orphan])


@pytest.mark.asyncio
async def test_cleanup_delete_removes_orphans_after_confirmation(tmp_path) -> None:
    ctx, blobs, _, live, _ = _populated(tmp_path)

    code = await cleanup.run_cleanup(ctx, delete=True, confirm=lambda _msg: True)

    assert code == 0
    assert list(blobs.blobs) == [live]


@pytest.mark.asyncio
async def test_cleanup_stats_only_touches_nothing(tmp_path) -> None:
    ctx, blobs, _, _, _ = _populated(tmp_path)

    code = await cleanup.run_cleanup(ctx, delete=True, stats=True, confirm=lambda _msg: True)

    assert code == 0
    assert len(blobs.blobs) == 2
    stats = await blobs.storage_stats()
    assert stats.total_files == 2
    assert stats.content_types == {"image/png": 1, "image/jpeg": 1}


def test_prompt_confirmation_accepts_yes_only(monkeypatch: pytest.MonkeyPatch) -> None:
    answers = iter(["y", "YES", "n", ""])
    monkeypatch.setattr("builtins.input", lambda _prompt: next(answers))
    assert [cleanup.prompt_confirmation("?") for _ in range(4)] == [True, True, False, False]


def test_prompt_confirmation_treats_eof_as_no(monkeypatch: pytest.MonkeyPatch) -> None:
    def _eof(_prompt: str) -> str:
        raise EOFError

    monkeypatch.setattr("builtins.input", _eof)
    assert cleanup.prompt_confirmation("?") is False


def test_cleanup_parser_flags() -> None:
    args = cleanup.build_parser().parse_args(["--delete"])
    assert args.delete is True and args.stats is False
    with pytest.raises(SystemExit) as excinfo:
        cleanup.main(["--help"])
    assert excinfo.value.code == 0


def test_cleanup_main_returns_nonzero_on_setup_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STORAGEGC_BACKEND", "nosuchbackend")
    assert cleanup.main([]) == 1


@pytest.mark.asyncio
async def test_optimize_requires_upload_secret(tmp_path) -> None:
    settings = make_settings(tmp_path, secret=None)
    with pytest.raises(ConfigurationError):
        await optimize._main(argparse.Namespace(kind=None), settings)


@pytest.mark.asyncio
async def test_optimize_kind_filter(tmp_path) -> None:
    ctx, blobs, records, live, _ = _populated(tmp_path)
    product = blobs.put(image_bytes("JPEG"), "image/jpeg")
    records.add(EntityKind.PRODUCT, "p1", product)

    stats = await optimize.run_optimize(ctx, kinds=[EntityKind.PRODUCT])

    assert stats.processed == 1
    assert stats.optimized == 1
    assert records.blob_ids_of(EntityKind.CAFE, "c1") == [live]
    new_product = records.blob_ids_of(EntityKind.PRODUCT, "p1")[0]
    assert detect_format(blobs.blobs[new_product].data) == "webp"


def test_optimize_parser_accepts_repeated_kinds() -> None:
    args = optimize.build_parser().parse_args(["--kind", "cafe", "--kind", "review"])
    assert args.kind == ["cafe", "review"]
    with pytest.raises(SystemExit):
        optimize.build_parser().parse_args(["--kind", "menu"])
