"""Re-encode referenced images to WebP and repoint their owning records.

Old blobs are left in place; the next reconciliation run sweeps them once no
record points at them anymore.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from storagegc.error_codes import ErrorCode
from storagegc.exceptions import (
    DownloadError,
    EncodeError,
    PerItemOptimizationError,
    RepointError,
    ScanError,
    UploadError,
)
from storagegc.models.records import OPTIMIZE_ORDER, RECORD_KINDS, EntityKind, ImageRecord
from storagegc.models.results import BlobState, OptimizationOutcome, OptimizationStats
from storagegc.optimizer.codec import WEBP_CONTENT_TYPE, detect_format, encode_webp
from storagegc.services.context import GCContext
from storagegc.utils.logging_setup import SUMMARY_LOGGER

logger = logging.getLogger(__name__)
summary_logger = logging.getLogger(SUMMARY_LOGGER)

SleepFn = Callable[[float], Awaitable[None]]


def _sizemb(n: int) -> str:
    return f"{n / 1024 / 1024:.2f}"


class ImageOptimizer:
    """Sequential, rate-limited image re-encoding across all record kinds."""

    def __init__(self, ctx: GCContext, *, sleep: SleepFn = asyncio.sleep) -> None:
        self.ctx = ctx
        cfg = ctx.settings.optimizer
        self.target_format = str(cfg.target_format)
        self.quality = int(cfg.quality)
        self.effort = int(cfg.effort)
        self.delay_s = float(cfg.delay_s)
        self.stats = OptimizationStats()
        self._sleep = sleep
        self._items_seen = 0

    async def _throttle(self) -> None:
        if self._items_seen > 0 and self.delay_s > 0:
            await self._sleep(self.delay_s)
        self._items_seen += 1

    async def _convert(self, blob_id: str, outcome: OptimizationOutcome) -> None:
        store = self.ctx.blob_store

        try:
            url = await store.fetch_url(blob_id)
        except Exception as exc:
            raise DownloadError(blob_id, f"resolving url failed: {exc}", state=outcome.state.value) from exc
        if not url:
            raise DownloadError(blob_id, "no url found for storage id", state=outcome.state.value)
        outcome.state = BlobState.FETCHED

        try:
            original = await store.download(url)
        except DownloadError:
            raise
        except Exception as exc:
            raise DownloadError(blob_id, f"download failed: {exc}", state=outcome.state.value) from exc
        outcome.state = BlobState.DOWNLOADED
        outcome.size_before = len(original)

        fmt = await asyncio.to_thread(detect_format, original)
        outcome.state = BlobState.FORMAT_CHECKED
        if fmt is None:
            raise EncodeError(blob_id, "unrecognised image data", state=outcome.state.value)
        if fmt == self.target_format:
            logger.info("image %s is already in %s format", blob_id, fmt)
            outcome.state = BlobState.SKIPPED
            return

        try:
            encoded = await asyncio.to_thread(encode_webp, original, quality=self.quality, method=self.effort)
        except Exception as exc:
            raise EncodeError(blob_id, f"re-encoding failed: {exc}", state=outcome.state.value) from exc
        outcome.state = BlobState.ENCODED
        outcome.size_after = len(encoded)

        try:
            target = await store.generate_upload_target(self.ctx.auth_token)
            new_blob_id = await store.upload_bytes(target, encoded, WEBP_CONTENT_TYPE)
        except UploadError as exc:
            raise UploadError(blob_id, exc.message, state=outcome.state.value) from exc
        except Exception as exc:
            raise UploadError(blob_id, f"upload failed: {exc}", state=outcome.state.value) from exc
        outcome.state = BlobState.UPLOADED
        outcome.new_blob_id = new_blob_id

    async def process_blob(self, blob_id: str) -> OptimizationOutcome:
        """Run one blob up to UPLOADED (or SKIPPED); never raises."""
        outcome = OptimizationOutcome(blob_id=blob_id, state=BlobState.PENDING)
        try:
            await self._convert(blob_id, outcome)
        except PerItemOptimizationError as exc:
            logger.error("error processing image %s: %s", blob_id, exc)
            return self._failed(outcome, str(exc), exc.error_code)
        except Exception as exc:
            logger.exception("unexpected error processing image %s", blob_id)
            return self._failed(outcome, str(exc), ErrorCode.UNKNOWN)

        if outcome.state == BlobState.UPLOADED:
            reduction = 0.0
            if outcome.size_before:
                reduction = (outcome.size_before - outcome.size_after) / outcome.size_before * 100
            logger.info(
                "optimized image %s -> %s: %d bytes -> %d bytes (%.1f%% reduction)",
                blob_id,
                outcome.new_blob_id,
                outcome.size_before,
                outcome.size_after,
                reduction,
            )
        return outcome

    @staticmethod
    def _failed(outcome: OptimizationOutcome, error: str, code: ErrorCode | str) -> OptimizationOutcome:
        outcome.state = BlobState.FAILED
        outcome.error = error
        outcome.error_code = ErrorCode(code) if not isinstance(code, ErrorCode) else code
        return outcome

    async def _repoint(self, record: ImageRecord, outcomes: list[OptimizationOutcome]) -> None:
        uploaded = [o for o in outcomes if o.state == BlobState.UPLOADED]
        if not uploaded:
            return

        rk = RECORD_KINDS[record.kind]
        token = self.ctx.auth_token
        try:
            if rk.multi:
                # Positional replace: failed or skipped slots keep their old id.
                new_ids = [
                    o.new_blob_id if o.state == BlobState.UPLOADED and o.new_blob_id else o.blob_id
                    for o in outcomes
                ]
                await self.ctx.record_store.update_image_refs(record.kind, record.entity_id, new_ids, token)
            else:
                new_id = str(uploaded[0].new_blob_id)
                await self.ctx.record_store.update_image_ref(record.kind, record.entity_id, new_id, token)
        except Exception as exc:
            err = RepointError(record.entity_id, str(exc), state=BlobState.UPLOADED.value)
            logger.error("failed to update %s %s with optimized image(s): %s", rk.table, record.entity_id, exc)
            for o in uploaded:
                self._failed(o, str(err), err.error_code)
            return

        for o in uploaded:
            o.state = BlobState.REPOINTED
        logger.info("updated %s %s with optimized image(s)", rk.table, record.label or record.entity_id)

    async def optimize_record(self, record: ImageRecord) -> list[OptimizationOutcome]:
        outcomes: list[OptimizationOutcome] = []
        for blob_id in record.blob_ids:
            await self._throttle()
            outcomes.append(await self.process_blob(blob_id))
        await self._repoint(record, outcomes)
        for o in outcomes:
            self.stats.record(o)
        return outcomes

    async def optimize_kind(self, kind: EntityKind) -> None:
        rk = RECORD_KINDS[kind]
        logger.info("starting %s image optimization", rk.table)
        try:
            records = await self.ctx.record_store.list_with_image_refs(kind)
        except Exception as exc:
            raise ScanError(f"listing {rk.table} with images failed: {exc}", failed_kinds=[rk.table]) from exc

        logger.info("found %d %s with images to process", len(records), rk.table)
        for index, record in enumerate(records, start=1):
            if not record.blob_ids:
                continue
            logger.info(
                "processing %s %s (%d/%d)",
                kind.value,
                record.label or record.entity_id,
                index,
                len(records),
            )
            await self.optimize_record(record)

    async def optimize_all(self) -> OptimizationStats:
        # Fail closed before any upload if the configured token is rejected.
        self.ctx.gate.check(self.ctx.auth_token)
        logger.info("starting image optimization process")
        try:
            for kind in OPTIMIZE_ORDER:
                await self.optimize_kind(kind)
        finally:
            self.log_stats()
        return self.stats

    def log_stats(self) -> None:
        s = self.stats
        summary_logger.info("=== Image Optimization Complete ===")
        summary_logger.info("total images processed: %d", s.processed)
        summary_logger.info("successfully optimized: %d", s.optimized)
        summary_logger.info("skipped (already %s): %d", self.target_format, s.skipped)
        summary_logger.info("failed to optimize: %d", s.failed)
        if s.total_size_before > 0:
            summary_logger.info("total size before (optimized images): %s MB", _sizemb(s.total_size_before))
            summary_logger.info("total size after (optimized images): %s MB", _sizemb(s.total_size_after))
            summary_logger.info("total reduction: %.1f%%", s.reduction_pct)
            summary_logger.info("space saved: %s MB", _sizemb(s.saved_bytes))
