"""Logging initialization for the storagegc jobs."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from storagegc.config import Settings

ROOT_LOGGER = "storagegc"
# Run summaries (deleted/failed counts, size reduction) are logged here.
SUMMARY_LOGGER = "storagegc.summary"

_CONFIGURED_ATTR = "_storagegc_configured"


def _log_file(settings: Settings) -> Path | None:
    raw = str(settings.logging.file or "").strip()
    if not raw:
        return None
    path = Path(raw)
    if not path.is_absolute():
        path = Path(settings.log_dir) / path
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def setup_logging(settings: Settings, *, force: bool = False) -> logging.Logger:
    """Configure the `storagegc` logger tree from Settings and return its root.

    Runs once per process unless `force` is set. The summary logger always
    reaches a terminal: with `LOG_CONSOLE=false` it gets its own stdout handler.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if getattr(root, _CONFIGURED_ATTR, False) and not force:
        return root

    cfg = settings.logging
    level = getattr(logging, str(cfg.level or "INFO").upper(), logging.INFO)
    formatter = logging.Formatter(fmt=str(cfg.format), datefmt=str(cfg.datefmt))

    handlers: list[logging.Handler] = []
    if cfg.console:
        handlers.append(logging.StreamHandler())
    file_path = _log_file(settings)
    if file_path is not None:
        handlers.append(
            RotatingFileHandler(
                file_path,
                maxBytes=int(cfg.max_bytes),
                backupCount=int(cfg.backup_count),
                encoding="utf-8",
            )
        )
    # Levels live on loggers, so the summary logger passes through at INFO.
    for handler in handlers:
        handler.setFormatter(formatter)

    root.setLevel(level)
    root.handlers = handlers
    root.propagate = False

    summary = logging.getLogger(SUMMARY_LOGGER)
    summary.setLevel(logging.INFO)
    summary.handlers = []
    if not cfg.console:
        out = logging.StreamHandler(sys.stdout)
        out.setFormatter(formatter)
        summary.handlers.append(out)

    # httpx logs every request at INFO; only keep that for debug runs.
    logging.getLogger("httpx").setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)

    setattr(root, _CONFIGURED_ATTR, True)
    return root
