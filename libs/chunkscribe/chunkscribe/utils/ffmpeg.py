"""Locate the ffmpeg executable used for decoding compressed uploads.

Lookup order: the configured value as a path, the configured value on PATH,
then the binary bundled with the optional `imageio-ffmpeg` package.
"""

from __future__ import annotations

import functools
import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def _bundled_ffmpeg() -> str | None:
    try:
        import imageio_ffmpeg
    except ImportError:
        return None
    try:
        return str(imageio_ffmpeg.get_ffmpeg_exe())
    except RuntimeError as exc:
        logger.warning("imageio-ffmpeg has no usable binary: %s", exc)
        return None


@functools.lru_cache(maxsize=8)
def resolve_ffmpeg_bin(ffmpeg_bin: str = "ffmpeg") -> str:
    """Best available ffmpeg command.

    Falls back to the configured name when nothing is found, so the decoder
    reports a missing binary at first use instead of at construction.
    """
    configured = (ffmpeg_bin or "ffmpeg").strip()

    if Path(configured).is_file():
        return configured

    on_path = shutil.which(configured)
    if on_path:
        return on_path

    bundled = _bundled_ffmpeg()
    if bundled:
        logger.info("using bundled ffmpeg from imageio-ffmpeg: %s", bundled)
        return bundled

    logger.warning("ffmpeg not found (configured=%r); compressed audio cannot be decoded", configured)
    return configured
