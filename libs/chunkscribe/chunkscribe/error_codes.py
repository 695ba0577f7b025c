"""Canonical error codes surfaced to API/UI."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    UNKNOWN = "UNKNOWN"
    INVALID_CONFIG = "INVALID_CONFIG"

    UPLOAD_TOO_LARGE = "UPLOAD_TOO_LARGE"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"

    DECODE_FAILED = "DECODE_FAILED"
    DECODER_UNAVAILABLE = "DECODER_UNAVAILABLE"
    SPLIT_FAILED = "SPLIT_FAILED"
    NO_SEGMENTS = "NO_SEGMENTS"

    ASR_FAILED = "ASR_FAILED"
    ASR_AUTH_FAILED = "ASR_AUTH_FAILED"
    ASR_RATE_LIMITED = "ASR_RATE_LIMITED"
    ASR_PAYLOAD_TOO_LARGE = "ASR_PAYLOAD_TOO_LARGE"

    MERGE_FAILED = "MERGE_FAILED"

    PROVIDER_FAILED = "PROVIDER_FAILED"
