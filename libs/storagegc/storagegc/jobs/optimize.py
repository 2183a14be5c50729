"""Re-encode every referenced image to WebP and repoint the owning records."""

from __future__ import annotations

import argparse
import asyncio
import logging
from collections.abc import Sequence

from storagegc.backend import get_backend
from storagegc.config import Settings
from storagegc.exceptions import ConfigurationError
from storagegc.models.records import OPTIMIZE_ORDER, EntityKind
from storagegc.models.results import OptimizationStats
from storagegc.optimizer.optimizer import ImageOptimizer
from storagegc.services.context import GCContext
from storagegc.utils.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Re-encode stored images to WebP and point records at the new files. "
            "Replaced files are left for the next cleanup run."
        ),
    )
    parser.add_argument(
        "--kind",
        action="append",
        choices=[k.value for k in EntityKind],
        default=None,
        help="Only process this record kind (repeatable; default: all)",
    )
    return parser


async def run_optimize(ctx: GCContext, *, kinds: Sequence[EntityKind] | None = None) -> OptimizationStats:
    optimizer = ImageOptimizer(ctx)
    if not kinds:
        return await optimizer.optimize_all()

    ctx.gate.check(ctx.auth_token)
    try:
        for kind in OPTIMIZE_ORDER:
            if kind in kinds:
                await optimizer.optimize_kind(kind)
    finally:
        optimizer.log_stats()
    return optimizer.stats


async def _main(args: argparse.Namespace, settings: Settings) -> int:
    if not settings.upload_secret:
        raise ConfigurationError("CONVEX_UPLOAD_SECRET environment variable is required")
    blob_store, record_store = get_backend(settings)
    ctx = GCContext.from_settings(settings, blob_store=blob_store, record_store=record_store)
    kinds = [EntityKind(k) for k in (args.kind or [])]
    try:
        await run_optimize(ctx, kinds=kinds)
    finally:
        await ctx.aclose()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()
    setup_logging(settings)
    try:
        return asyncio.run(_main(args, settings))
    except Exception:
        logger.exception("image optimization failed")
        return 1
