"""Per-item results and run summaries."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from storagegc.error_codes import ErrorCode


# Per-item operations report through these result records instead of raising
# across a batch boundary.
@dataclass(frozen=True)
class DeletionResult:
    blob_id: str
    success: bool
    error: str | None = None
    error_code: ErrorCode | None = None


@dataclass
class DeletionReport:
    total: int = 0
    success_count: int = 0
    failure_count: int = 0
    results: list[DeletionResult] = field(default_factory=list)

    def add(self, result: DeletionResult) -> None:
        self.results.append(result)
        self.total += 1
        if result.success:
            self.success_count += 1
        else:
            self.failure_count += 1

    @property
    def failures(self) -> list[DeletionResult]:
        return [r for r in self.results if not r.success]


@dataclass(frozen=True)
class DryRunReport:
    count: int
    total_size: int

    @property
    def total_size_mb(self) -> float:
        return round(self.total_size / 1024 / 1024, 2)


class SweepStatus(Enum):
    NOTHING_TO_DELETE = "nothing_to_delete"
    DRY_RUN = "dry_run"
    CANCELLED = "cancelled"
    DELETED = "deleted"


@dataclass(frozen=True)
class SweepOutcome:
    status: SweepStatus
    plan: DryRunReport
    report: DeletionReport | None = None


class BlobState(Enum):
    PENDING = "pending"
    FETCHED = "fetched"
    FORMAT_CHECKED = "format_checked"
    DOWNLOADED = "downloaded"
    ENCODED = "encoded"
    UPLOADED = "uploaded"
    REPOINTED = "repointed"
    SKIPPED = "skipped"
    FAILED = "failed"


TERMINAL_STATES = frozenset({BlobState.SKIPPED, BlobState.REPOINTED, BlobState.FAILED})


@dataclass
class OptimizationOutcome:
    blob_id: str
    state: BlobState
    new_blob_id: str | None = None
    size_before: int = 0
    size_after: int = 0
    error: str | None = None
    error_code: ErrorCode | None = None


@dataclass
class OptimizationStats:
    processed: int = 0
    optimized: int = 0
    skipped: int = 0
    failed: int = 0
    total_size_before: int = 0
    total_size_after: int = 0

    def record(self, outcome: OptimizationOutcome) -> None:
        self.processed += 1
        if outcome.state == BlobState.REPOINTED:
            self.optimized += 1
            self.total_size_before += int(outcome.size_before)
            self.total_size_after += int(outcome.size_after)
        elif outcome.state == BlobState.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    @property
    def saved_bytes(self) -> int:
        return self.total_size_before - self.total_size_after

    @property
    def reduction_pct(self) -> float:
        if self.total_size_before <= 0:
            return 0.0
        return round(self.saved_bytes / self.total_size_before * 100, 1)
