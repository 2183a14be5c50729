"""Dangling blob garbage collection."""

from storagegc.gc.deletion import DeletionExecutor
from storagegc.gc.enumerator import StorageEnumerator
from storagegc.gc.reconciler import Reconciler, compute_dangling
from storagegc.gc.scanner import ReferenceScanner

__all__ = [
    "DeletionExecutor",
    "Reconciler",
    "ReferenceScanner",
    "StorageEnumerator",
    "compute_dangling",
]
