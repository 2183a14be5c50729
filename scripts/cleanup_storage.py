#!/usr/bin/env python3
"""Identify and optionally remove storage files no database record references."""

from __future__ import annotations

from storagegc.jobs.cleanup import main

if __name__ == "__main__":
    raise SystemExit(main())
