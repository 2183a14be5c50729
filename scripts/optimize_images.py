#!/usr/bin/env python3
"""Re-encode stored images to WebP and repoint the records that use them."""

from __future__ import annotations

from storagegc.jobs.optimize import main

if __name__ == "__main__":
    raise SystemExit(main())
