"""Upload admission and size-based job tuning."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import PurePath

from chunkscribe.error_codes import ErrorCode
from chunkscribe.exceptions import UploadRejectedError

logger = logging.getLogger(__name__)

MB = 1024 * 1024
DEFAULT_MAX_UPLOAD_BYTES = 100 * MB

SUPPORTED_EXTENSIONS = frozenset({".mp3", ".wav", ".m4a", ".ogg", ".flac"})
SUPPORTED_CONTENT_TYPES = frozenset(
    {
        "audio/mp3",
        "audio/mpeg",
        "audio/wav",
        "audio/m4a",
        "audio/ogg",
        "audio/flac",
        "audio/x-m4a",
    }
)

# (min_bytes_exclusive, segment_duration_s, width), largest first.
_SIZE_TIERS: tuple[tuple[int, float, int], ...] = (
    (50 * MB, 120.0, 2),
    (20 * MB, 90.0, 3),
)


@dataclass(frozen=True)
class JobOptions:
    segment_duration_s: float
    width: int


def validate_upload(
    filename: str,
    size_bytes: int,
    content_type: str | None = None,
    *,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> None:
    """Reject files the pipeline should never see.

    A file passes the format check when either its extension or its MIME type
    is supported; browsers often send an empty or generic type.
    """
    suffix = PurePath(str(filename or "")).suffix.lower()
    mime = str(content_type or "").split(";", 1)[0].strip().lower()
    if suffix not in SUPPORTED_EXTENSIONS and mime not in SUPPORTED_CONTENT_TYPES:
        logger.info("upload rejected: unsupported format (filename=%s, type=%s)", filename, mime)
        raise UploadRejectedError(
            f"unsupported format: {filename!r} ({mime or 'no content type'}); "
            f"use one of {', '.join(sorted(SUPPORTED_EXTENSIONS))}",
            error_code=ErrorCode.UNSUPPORTED_FORMAT,
        )
    if int(size_bytes) > int(max_bytes):
        logger.info("upload rejected: too large (filename=%s, bytes=%d)", filename, size_bytes)
        raise UploadRejectedError(
            f"file is {int(size_bytes) / MB:.1f}MB; the limit is {int(max_bytes) / MB:.0f}MB",
            error_code=ErrorCode.UPLOAD_TOO_LARGE,
        )


def suggest_job_options(size_bytes: int, *, segment_duration_s: float, width: int) -> JobOptions:
    """Longer segments and a narrower gate for big files; defaults otherwise."""
    for threshold, tier_duration_s, tier_width in _SIZE_TIERS:
        if int(size_bytes) > threshold:
            logger.debug(
                "size tuning (bytes=%d, segment_s=%.0f, width=%d)",
                size_bytes,
                tier_duration_s,
                tier_width,
            )
            return JobOptions(segment_duration_s=tier_duration_s, width=tier_width)
    return JobOptions(segment_duration_s=float(segment_duration_s), width=int(width))
