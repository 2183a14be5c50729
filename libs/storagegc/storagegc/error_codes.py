"""Canonical error codes surfaced in reports and logs."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    UNKNOWN = "UNKNOWN"
    UNAUTHORIZED = "UNAUTHORIZED"

    ENUMERATION_FAILED = "ENUMERATION_FAILED"
    SCAN_FAILED = "SCAN_FAILED"
    METADATA_FAILED = "METADATA_FAILED"

    DELETE_FAILED = "DELETE_FAILED"
    DELETE_BATCH_FAILED = "DELETE_BATCH_FAILED"

    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    ENCODE_FAILED = "ENCODE_FAILED"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    REPOINT_FAILED = "REPOINT_FAILED"

    BACKEND_FAILED = "BACKEND_FAILED"
    RATE_LIMITED = "RATE_LIMITED"
