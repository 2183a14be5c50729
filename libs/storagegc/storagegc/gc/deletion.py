"""Batched, authorization-gated deletion of confirmed dangling blobs."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from storagegc.error_codes import ErrorCode
from storagegc.exceptions import UnauthorizedError
from storagegc.models.blob import DanglingBlob
from storagegc.models.results import (
    DeletionReport,
    DeletionResult,
    DryRunReport,
    SweepOutcome,
    SweepStatus,
)
from storagegc.services.context import GCContext

logger = logging.getLogger(__name__)

ConfirmFn = Callable[[str], bool]


def _chunks(items: Sequence[str], size: int) -> list[list[str]]:
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class DeletionExecutor:
    def __init__(self, ctx: GCContext, *, batch_size: int | None = None) -> None:
        self.ctx = ctx
        self.batch_size = max(1, int(batch_size or ctx.settings.gc.delete_batch_size))

    def plan(self, dangling: Sequence[DanglingBlob]) -> DryRunReport:
        """Describe what a deletion would remove without touching the store."""
        total_size = sum(int(b.size) for b in dangling if b.size)
        return DryRunReport(count=len(dangling), total_size=total_size)

    async def delete_blobs(self, blob_ids: Sequence[str], auth_token: str | None) -> DeletionReport:
        """Delete ids batch by batch; per-item failures never stop the run.

        Raises UnauthorizedError before any deletion when the token is rejected.
        """
        self.ctx.gate.check(auth_token)

        ids = list(blob_ids)
        batches = _chunks(ids, self.batch_size)
        report = DeletionReport()
        logger.info("deleting %d dangling files in %d batches", len(ids), len(batches))

        for index, batch in enumerate(batches, start=1):
            logger.info("deleting batch %d/%d (%d files)", index, len(batches), len(batch))
            try:
                results = await self.ctx.blob_store.delete_blobs(batch, auth_token)
            except UnauthorizedError:
                raise
            except Exception as exc:
                logger.error("delete batch %d failed (first=%s): %s", index, batch[0], exc)
                results = [
                    DeletionResult(
                        blob_id=blob_id,
                        success=False,
                        error=str(exc),
                        error_code=ErrorCode.DELETE_BATCH_FAILED,
                    )
                    for blob_id in batch
                ]

            failed = 0
            for result in results:
                if not result.success:
                    failed += 1
                    logger.error("failed to delete %s: %s", result.blob_id, result.error)
                    if result.error_code is None:
                        result = DeletionResult(
                            blob_id=result.blob_id,
                            success=False,
                            error=result.error,
                            error_code=ErrorCode.DELETE_FAILED,
                        )
                report.add(result)
            if failed:
                logger.warning("%d files failed to delete in batch %d", failed, index)

        logger.info(
            "deletion complete: %d successful, %d failed out of %d total files",
            report.success_count,
            report.failure_count,
            report.total,
        )
        return report

    async def sweep(
        self,
        dangling: Sequence[DanglingBlob],
        *,
        execute: bool,
        confirm: ConfirmFn | None,
        auth_token: str | None,
    ) -> SweepOutcome:
        """Dry-run by default; delete only when asked to and confirmed."""
        plan = self.plan(dangling)
        if not dangling:
            logger.info("no dangling files found")
            return SweepOutcome(status=SweepStatus.NOTHING_TO_DELETE, plan=plan)

        logger.info("found %d dangling file(s)", plan.count)
        if plan.total_size > 0:
            logger.info("total size: %.2fMB", plan.total_size_mb)

        if not execute:
            logger.info("DRY RUN: no files were deleted. Use --delete to actually remove them.")
            return SweepOutcome(status=SweepStatus.DRY_RUN, plan=plan)

        prompt = f"Are you sure you want to delete these {plan.count} dangling file(s)?"
        if confirm is None or not confirm(prompt):
            logger.info("deletion cancelled")
            return SweepOutcome(status=SweepStatus.CANCELLED, plan=plan)

        report = await self.delete_blobs([b.blob_id for b in dangling], auth_token)
        return SweepOutcome(status=SweepStatus.DELETED, plan=plan, report=report)
