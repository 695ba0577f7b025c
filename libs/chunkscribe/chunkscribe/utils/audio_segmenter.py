"""Cut a decoded recording into fixed-length, overlapping WAV segments."""

from __future__ import annotations

import logging
import math
from dataclasses import replace

from chunkscribe.exceptions import ConfigurationError
from chunkscribe.models.segment import Segment
from chunkscribe.models.waveform import Waveform
from chunkscribe.utils.wav import SUPPORTED_BIT_DEPTHS, decode_wav, encode_wav

logger = logging.getLogger(__name__)

MIN_SEGMENT_DURATION_S = 1.0


def validate_window(segment_duration_s: float, overlap_s: float) -> None:
    """Fail fast on windows that would not advance."""
    if not segment_duration_s > 0:
        raise ConfigurationError(f"segment duration must be > 0 (got {segment_duration_s!r})")
    if overlap_s < 0:
        raise ConfigurationError(f"overlap must be >= 0 (got {overlap_s!r})")
    if overlap_s >= segment_duration_s:
        raise ConfigurationError(
            f"overlap ({overlap_s}s) must be shorter than segment duration ({segment_duration_s}s)"
        )


def split_waveform(
    waveform: Waveform,
    segment_duration_s: float,
    overlap_s: float,
    *,
    bit_depth: int = 16,
    min_duration_s: float = MIN_SEGMENT_DURATION_S,
) -> list[Segment]:
    """Slice `waveform` into overlapping segments.

    Windows start at sample 0 and advance by ``segment_duration_s - overlap_s``.
    The last window is clamped to the end of the recording; a window strictly
    shorter than `min_duration_s` ends the sequence and is dropped.
    """
    validate_window(float(segment_duration_s), float(overlap_s))
    if bit_depth not in SUPPORTED_BIT_DEPTHS:
        raise ConfigurationError(f"unsupported bit depth: {bit_depth}")

    sample_rate = int(waveform.sample_rate)
    segment_samples = math.floor(float(segment_duration_s) * sample_rate)
    overlap_samples = math.floor(float(overlap_s) * sample_rate)
    step_samples = segment_samples - overlap_samples
    if segment_samples <= 0 or step_samples <= 0:
        raise ConfigurationError(
            f"window does not advance at {sample_rate}Hz "
            f"(segment_samples={segment_samples}, step_samples={step_samples})"
        )

    total = waveform.length
    segments: list[Segment] = []
    position = 0
    while position < total:
        end_sample = min(position + segment_samples, total)
        actual_duration = (end_sample - position) / sample_rate
        if actual_duration < float(min_duration_s):
            logger.debug(
                "segment tail dropped (start_s=%.3f, duration_s=%.3f)",
                position / sample_rate,
                actual_duration,
            )
            break

        payload = encode_wav(waveform.slice(position, end_sample), bit_depth=bit_depth)
        segments.append(
            Segment(
                index=len(segments),
                start=position / sample_rate,
                end=end_sample / sample_rate,
                duration=actual_duration,
                payload=payload,
                bit_depth=int(bit_depth),
                sample_rate=sample_rate,
                channel_count=waveform.channel_count,
            )
        )
        position += step_samples

    logger.info(
        "split done (segments=%d, duration_s=%.2f, segment_s=%.2f, overlap_s=%.2f, bit_depth=%d)",
        len(segments),
        waveform.duration_s,
        float(segment_duration_s),
        float(overlap_s),
        int(bit_depth),
    )
    return segments


def smaller_bit_depth(bit_depth: int) -> int | None:
    """Next bit depth down, or None when already at the smallest."""
    lower = [b for b in SUPPORTED_BIT_DEPTHS if b < int(bit_depth)]
    return max(lower) if lower else None


def reencode_segment(segment: Segment, bit_depth: int) -> Segment:
    """Rebuild a segment's payload at another bit depth, keeping its timing."""
    if bit_depth not in SUPPORTED_BIT_DEPTHS:
        raise ConfigurationError(f"unsupported bit depth: {bit_depth}")
    waveform = decode_wav(segment.payload)
    return replace(segment, payload=encode_wav(waveform, bit_depth=bit_depth), bit_depth=int(bit_depth))
