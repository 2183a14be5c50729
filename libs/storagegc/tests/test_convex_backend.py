from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from storagegc.backend.blob_store import ConvexBlobStore
from storagegc.backend.convex_client import ConvexClient
from storagegc.backend.record_store import ConvexRecordStore
from storagegc.error_codes import ErrorCode
from storagegc.exceptions import BackendError, UnauthorizedError, UploadError
from storagegc.models.blob import UploadTarget
from storagegc.models.records import EntityKind

_URL = "https://happy-cat-123.convex.cloud"


def _ok(value: Any) -> httpx.Response:
    return httpx.Response(200, json={"status": "success", "value": value})


class _Recorder:
    """Routes Convex function calls by path and records every request."""

    def __init__(self, routes: dict[str, Callable[[dict[str, Any]], httpx.Response]]) -> None:
        self.routes = routes
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        assert payload["format"] == "json"
        kind = request.url.path.rsplit("/", 1)[-1]
        self.calls.append((kind, payload["path"], payload["args"]))
        return self.routes[payload["path"]](payload["args"])


def _client(recorder: _Recorder, **kw: Any) -> ConvexClient:
    return ConvexClient(_URL + "/", transport=httpx.MockTransport(recorder), **kw)


@pytest.mark.asyncio
async def test_query_posts_function_path_and_returns_value() -> None:
    rec = _Recorder({"storage:getStorageStats": lambda _args: _ok({"totalFiles": 3})})
    client = _client(rec)
    try:
        value = await client.query("storage:getStorageStats")
    finally:
        await client.aclose()

    assert value == {"totalFiles": 3}
    assert rec.calls == [("query", "storage:getStorageStats", {})]


@pytest.mark.asyncio
async def test_error_status_maps_to_backend_and_unauthorized_errors() -> None:
    rec = _Recorder(
        {
            "storage:deleteStorageFile": lambda _args: httpx.Response(
                200, json={"status": "error", "errorMessage": "Unauthorized: Invalid upload secret"}
            ),
            "storage:getStorageStats": lambda _args: httpx.Response(
                200, json={"status": "error", "errorMessage": "Function not found"}
            ),
        }
    )
    client = _client(rec)
    try:
        with pytest.raises(UnauthorizedError):
            await client.mutation("storage:deleteStorageFile", {"storageId": "x"})
        with pytest.raises(BackendError) as excinfo:
            await client.query("storage:getStorageStats")
    finally:
        await client.aclose()

    assert excinfo.value.function == "storage:getStorageStats"
    assert not excinfo.value.retryable
    # Non-retryable errors are not repeated.
    assert len(rec.calls) == 2


@pytest.mark.asyncio
async def test_queries_retry_on_server_errors() -> None:
    attempts: list[int] = []

    def _flaky(_args: dict[str, Any]) -> httpx.Response:
        attempts.append(1)
        if len(attempts) == 1:
            return httpx.Response(503, text="overloaded")
        return _ok([])

    rec = _Recorder({"cafes:getAllWithImages": _flaky})
    client = _client(rec, max_read_retries=2)
    try:
        assert await client.query("cafes:getAllWithImages") == []
    finally:
        await client.aclose()
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_mutations_are_not_retried() -> None:
    rec = _Recorder({"storage:deleteStorageFiles": lambda _args: httpx.Response(503, text="overloaded")})
    client = _client(rec, max_read_retries=3)
    try:
        with pytest.raises(BackendError) as excinfo:
            await client.mutation("storage:deleteStorageFiles", {"storageIds": ["a"]})
    finally:
        await client.aclose()

    assert excinfo.value.status_code == 503
    assert excinfo.value.retryable
    assert len(rec.calls) == 1


@pytest.mark.asyncio
async def test_rate_limit_is_tagged() -> None:
    rec = _Recorder({"http:generateUploadUrl": lambda _args: httpx.Response(429, text="slow down")})
    client = _client(rec)
    try:
        with pytest.raises(BackendError) as excinfo:
            await client.mutation("http:generateUploadUrl", {})
    finally:
        await client.aclose()
    assert excinfo.value.error_code == ErrorCode.RATE_LIMITED


@pytest.mark.asyncio
async def test_blob_store_maps_listing_metadata_and_stats() -> None:
    def _files(args: dict[str, Any]) -> httpx.Response:
        if "cursor" not in args:
            return _ok({"files": ["a", "b"], "nextCursor": "b", "hasMore": True})
        return _ok({"files": ["c"], "nextCursor": None, "hasMore": False})

    rec = _Recorder(
        {
            "storage:getAllStorageFiles": _files,
            "storage:getStorageMetadata": lambda _args: _ok(
                [
                    {"storageId": "a", "metadata": {"size": 2048, "contentType": "image/png"}},
                    {"storageId": "b", "metadata": None},
                ]
            ),
            "storage:getStorageStats": lambda _args: _ok(
                {"totalFiles": 3, "totalSize": 4096, "contentTypes": {"image/png": 2, "image/webp": 1}}
            ),
        }
    )
    store = ConvexBlobStore(_client(rec))
    try:
        first = await store.list_blobs(None, 2)
        second = await store.list_blobs(first.next_cursor, 2)
        meta = await store.get_metadata(["a", "b"])
        stats = await store.storage_stats()
    finally:
        await store.aclose()

    assert (first.items, first.next_cursor, first.has_more) == (["a", "b"], "b", True)
    assert (second.items, second.has_more) == (["c"], False)
    assert rec.calls[1] == ("query", "storage:getAllStorageFiles", {"limit": 2, "cursor": "b"})
    assert meta["a"] is not None and meta["a"].size == 2048 and meta["a"].content_type == "image/png"
    assert meta["b"] is None
    assert stats.total_files == 3
    assert stats.content_types == {"image/png": 2, "image/webp": 1}


@pytest.mark.asyncio
async def test_blob_store_batch_delete_maps_per_item_results() -> None:
    rec = _Recorder(
        {
            "storage:deleteStorageFiles": lambda args: _ok(
                {
                    "total": 2,
                    "successCount": 1,
                    "failureCount": 1,
                    "results": [
                        {"storageId": "a", "success": True},
                        {"storageId": "b", "success": False, "error": "Storage file not found"},
                    ],
                }
            ),
        }
    )
    store = ConvexBlobStore(_client(rec))
    try:
        results = await store.delete_blobs(["a", "b", "c"], "s3cret")
    finally:
        await store.aclose()

    assert rec.calls == [
        ("mutation", "storage:deleteStorageFiles", {"storageIds": ["a", "b", "c"], "uploadSecret": "s3cret"})
    ]
    assert [(r.blob_id, r.success) for r in results] == [("a", True), ("b", False), ("c", False)]
    assert results[1].error == "Storage file not found"
    assert results[2].error == "missing from batch response"


@pytest.mark.asyncio
async def test_blob_store_upload_round_trip() -> None:
    upload_url = f"{_URL}/api/storage/upload?token=abc"

    def _handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == upload_url:
            assert request.headers["Content-Type"] == "image/webp"
            assert request.content == b"RIFF....WEBP"
            return httpx.Response(200, json={"storageId": "kg-new"})
        payload = json.loads(request.content)
        assert payload["path"] == "http:generateUploadUrl"
        assert payload["args"] == {"uploadSecret": "s3cret"}
        return _ok(upload_url)

    store = ConvexBlobStore(ConvexClient(_URL, transport=httpx.MockTransport(_handler)))
    try:
        target = await store.generate_upload_target("s3cret")
        new_id = await store.upload_bytes(target, b"RIFF....WEBP", "image/webp")
    finally:
        await store.aclose()

    assert target == UploadTarget(url=upload_url)
    assert new_id == "kg-new"


@pytest.mark.asyncio
async def test_blob_store_upload_without_storage_id_fails() -> None:
    store = ConvexBlobStore(
        ConvexClient(_URL, transport=httpx.MockTransport(lambda _req: httpx.Response(200, json={})))
    )
    try:
        with pytest.raises(UploadError):
            await store.upload_bytes(UploadTarget(url=f"{_URL}/upload"), b"x", "image/webp")
    finally:
        await store.aclose()


@pytest.mark.asyncio
async def test_record_store_projects_and_updates() -> None:
    rec = _Recorder(
        {
            "reviews:getAllWithImages": lambda _args: _ok(
                [
                    {"_id": "r1", "imageStorageIds": ["a", "b"], "rating": 5},
                    {"_id": "r2", "imageStorageIds": []},
                    {"_id": "r3", "imageStorageIds": ["c"]},
                ]
            ),
            "products:getAllWithImages": lambda _args: _ok(
                [{"_id": "p1", "name": "Latte", "imageStorageId": "d"}, {"_id": "p2", "imageStorageId": None}]
            ),
            "products:updateImage": lambda _args: _ok(None),
            "reviews:updateImages": lambda _args: _ok(None),
        }
    )
    store = ConvexRecordStore(_client(rec))
    try:
        reviews = await store.list_with_image_refs(EntityKind.REVIEW)
        products = await store.list_with_image_refs(EntityKind.PRODUCT)
        await store.update_image_ref(EntityKind.PRODUCT, "p1", "d2", "s3cret")
        await store.update_image_refs(EntityKind.REVIEW, "r1", ["a2", "b"], "s3cret")
        with pytest.raises(ValueError):
            await store.update_image_refs(EntityKind.REVIEW, "r1", ["a", "b", "c"], "s3cret")
        with pytest.raises(ValueError):
            await store.update_image_ref(EntityKind.REVIEW, "r1", "a", "s3cret")
    finally:
        await store.aclose()

    assert [(r.entity_id, r.blob_ids) for r in reviews] == [("r1", ("a", "b")), ("r3", ("c",))]
    assert [(p.entity_id, p.blob_ids, p.label) for p in products] == [("p1", ("d",), "Latte")]
    assert rec.calls[-2:] == [
        ("mutation", "products:updateImage", {"productId": "p1", "storageId": "d2", "uploadSecret": "s3cret"}),
        ("mutation", "reviews:updateImages", {"reviewId": "r1", "imageStorageIds": ["a2", "b"], "uploadSecret": "s3cret"}),
    ]


@pytest.mark.asyncio
async def test_mutations_omit_upload_secret_when_no_token() -> None:
    rec = _Recorder(
        {
            "storage:deleteStorageFiles": lambda _args: _ok({"results": [{"storageId": "a", "success": True}]}),
            "storage:deleteStorageFile": lambda _args: _ok({"success": True}),
            "http:generateUploadUrl": lambda _args: _ok(f"{_URL}/upload"),
            "cafes:updateImage": lambda _args: _ok(None),
            "reviews:updateImages": lambda _args: _ok(None),
        }
    )
    client = _client(rec)
    blobs = ConvexBlobStore(client)
    records = ConvexRecordStore(client)
    try:
        await blobs.delete_blobs(["a"], None)
        await blobs.delete_blob("a", None)
        await blobs.generate_upload_target(None)
        await records.update_image_ref(EntityKind.CAFE, "c1", "n1", None)
        await records.update_image_refs(EntityKind.REVIEW, "r1", ["n1"], None)
    finally:
        await blobs.aclose()

    assert [args for _kind, _path, args in rec.calls] == [
        {"storageIds": ["a"]},
        {"storageId": "a"},
        {},
        {"cafeId": "c1", "storageId": "n1"},
        {"reviewId": "r1", "imageStorageIds": ["n1"]},
    ]
