"""storagegc exception hierarchy."""

from __future__ import annotations

from collections.abc import Iterable

from storagegc.error_codes import ErrorCode


class StorageGCError(Exception):
    """Base error for storagegc."""


class ConfigurationError(StorageGCError):
    """Raised when configuration or inputs are invalid."""


class BackendError(StorageGCError):
    """Raised when a call to the managed backend fails."""

    def __init__(
        self,
        function: str,
        message: str,
        *,
        error_code: ErrorCode | str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(f"{function}: {message}")
        self.function = function
        self.message = message
        self.error_code = error_code or ErrorCode.BACKEND_FAILED
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class UnauthorizedError(StorageGCError):
    """Raised when a mutating call is made with a wrong or missing token."""

    error_code = ErrorCode.UNAUTHORIZED


class EnumerationError(StorageGCError):
    """Raised when listing the blob store fails; no partial listing is used."""

    error_code = ErrorCode.ENUMERATION_FAILED


class ScanError(StorageGCError):
    """Raised when one or more reference reads fail."""

    error_code = ErrorCode.SCAN_FAILED

    def __init__(self, message: str, *, failed_kinds: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.failed_kinds = tuple(failed_kinds)


class MetadataFetchError(StorageGCError):
    """Raised when blob metadata cannot be fetched. Never fatal to a run."""

    error_code = ErrorCode.METADATA_FAILED


class PerItemDeletionError(StorageGCError):
    """A single blob failed to delete."""

    error_code = ErrorCode.DELETE_FAILED

    def __init__(self, blob_id: str, message: str) -> None:
        super().__init__(f"{blob_id}: {message}")
        self.blob_id = blob_id
        self.message = message


class PerItemOptimizationError(StorageGCError):
    """A single blob failed somewhere in the re-encoding pipeline."""

    error_code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, blob_id: str, message: str, *, state: str | None = None) -> None:
        prefix = blob_id
        if state:
            prefix = f"{prefix} (state={state})"
        super().__init__(f"{prefix}: {message}")
        self.blob_id = blob_id
        self.message = message
        self.state = state


class DownloadError(PerItemOptimizationError):
    """Resolving or downloading a blob failed."""

    error_code = ErrorCode.DOWNLOAD_FAILED


class UploadError(PerItemOptimizationError):
    """Uploading re-encoded bytes failed."""

    error_code = ErrorCode.UPLOAD_FAILED


class EncodeError(PerItemOptimizationError):
    """The image could not be decoded or re-encoded."""

    error_code = ErrorCode.ENCODE_FAILED


class RepointError(PerItemOptimizationError):
    """The owning record could not be pointed at the new blob."""

    error_code = ErrorCode.REPOINT_FAILED
