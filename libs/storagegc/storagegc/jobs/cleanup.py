"""Find storage files no record references and optionally delete them."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from collections.abc import Sequence

from storagegc.backend import get_backend
from storagegc.config import Settings
from storagegc.gc.deletion import ConfirmFn, DeletionExecutor
from storagegc.gc.reconciler import Reconciler
from storagegc.models.results import SweepOutcome
from storagegc.services.context import GCContext
from storagegc.utils.logging_setup import SUMMARY_LOGGER, setup_logging

logger = logging.getLogger(__name__)
summary_logger = logging.getLogger(SUMMARY_LOGGER)

_EPILOG = """\
Environment variables:
  CONVEX_URL (or VITE_CONVEX_URL)  deployment URL
  CONVEX_UPLOAD_SECRET             upload secret for file operations (deletion)

Examples:
  # Dry run (list dangling files without deleting)
  python scripts/cleanup_storage.py

  # Actually delete dangling files
  python scripts/cleanup_storage.py --delete

  # Show storage statistics only
  python scripts/cleanup_storage.py --stats
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Identify storage files that are not referenced by any database record "
            "and optionally remove them."
        ),
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--delete",
        action="store_true",
        help="Actually delete dangling files (default is dry run)",
    )
    parser.add_argument("--stats", action="store_true", help="Show storage statistics only")
    return parser


def prompt_confirmation(message: str) -> bool:
    try:
        answer = input(f"{message} (y/N): ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


async def show_storage_stats(ctx: GCContext) -> None:
    logger.info("fetching storage statistics")
    stats = await ctx.blob_store.storage_stats()
    logger.info(
        "storage statistics:\n  total files: %d\n  total size: %s MB\n  content types: %s",
        stats.total_files,
        stats.total_size_mb,
        json.dumps(stats.content_types, indent=2, sort_keys=True),
    )


def _log_summary(outcome: SweepOutcome | None) -> None:
    if outcome is None:
        summary_logger.info("summary: run aborted before a dangling set was computed")
        return
    report = outcome.report
    summary_logger.info(
        "summary: status=%s dangling=%d size=%.2fMB deleted=%d failed=%d",
        outcome.status.value,
        outcome.plan.count,
        outcome.plan.total_size_mb,
        report.success_count if report else 0,
        report.failure_count if report else 0,
    )


async def run_cleanup(
    ctx: GCContext,
    *,
    delete: bool = False,
    stats: bool = False,
    confirm: ConfirmFn | None = prompt_confirmation,
) -> int:
    """Run one cleanup pass. Returns the process exit code."""
    if stats:
        await show_storage_stats(ctx)
        return 0

    if delete:
        logger.info("running in DELETE mode - files will be permanently removed")
        if not ctx.auth_token:
            logger.warning("no upload secret configured; the backend may reject deletions")
    else:
        logger.info("running in DRY RUN mode - no files will be deleted")

    outcome: SweepOutcome | None = None
    try:
        # Reconcile right before deleting; a stale report is never reused.
        dangling = await Reconciler(ctx).find_dangling()
        outcome = await DeletionExecutor(ctx).sweep(
            dangling,
            execute=delete,
            confirm=confirm,
            auth_token=ctx.auth_token,
        )
    finally:
        _log_summary(outcome)
    return 0


async def _main(args: argparse.Namespace, settings: Settings) -> int:
    blob_store, record_store = get_backend(settings)
    ctx = GCContext.from_settings(settings, blob_store=blob_store, record_store=record_store)
    try:
        return await run_cleanup(ctx, delete=bool(args.delete), stats=bool(args.stats))
    finally:
        await ctx.aclose()


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()
    setup_logging(settings)
    try:
        return asyncio.run(_main(args, settings))
    except Exception:
        logger.exception("cleanup failed")
        return 1
