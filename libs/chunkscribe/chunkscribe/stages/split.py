"""Split stage: decode the upload and cut it into overlapping segments."""

from __future__ import annotations

import asyncio
import logging
from typing import cast

from chunkscribe.config import Settings
from chunkscribe.error_codes import ErrorCode
from chunkscribe.exceptions import StageExecutionError
from chunkscribe.pipeline.context import PipelineContext
from chunkscribe.providers.audio.base import AudioDecoder
from chunkscribe.stages.base import Stage
from chunkscribe.utils.audio_segmenter import split_waveform, validate_window

logger = logging.getLogger(__name__)


class SplitStage(Stage):
    """Inputs: audio_bytes (+ optional window overrides). Outputs: segments."""

    name = "splitting"

    def __init__(self, settings: Settings, decoder: AudioDecoder) -> None:
        self.settings = settings
        self.decoder = decoder

    def validate_input(self, context: PipelineContext) -> bool:
        return bool(context.get("audio_bytes"))

    async def execute(self, context: PipelineContext) -> PipelineContext:
        context = cast(PipelineContext, dict(context))
        cfg = self.settings.segment
        segment_duration_s = float(context.get("segment_duration_s") or cfg.duration_s)
        overlap_s = float(context.get("overlap_s", cfg.overlap_s))
        bit_depth = int(context.get("bit_depth") or cfg.bit_depth)

        # Reject a non-advancing window before spending time on decoding.
        validate_window(segment_duration_s, overlap_s)

        waveform = await self.decoder.decode(context["audio_bytes"], context.get("filename"))
        logger.info(
            "decoded %s (sample_rate=%d, channels=%d, duration_s=%.2f)",
            context.get("filename") or "<bytes>",
            waveform.sample_rate,
            waveform.channel_count,
            waveform.duration_s,
        )

        segments = await asyncio.to_thread(
            split_waveform,
            waveform,
            segment_duration_s,
            overlap_s,
            bit_depth=bit_depth,
            min_duration_s=float(cfg.min_duration_s),
        )
        if not segments:
            raise StageExecutionError(
                self.name,
                f"no segments produced (duration_s={waveform.duration_s:.2f})",
                job_id=context.get("job_id"),
                error_code=ErrorCode.NO_SEGMENTS,
            )

        context["audio_duration_s"] = waveform.duration_s
        context["segments"] = segments
        context["segment_duration_s"] = segment_duration_s
        context["overlap_s"] = overlap_s
        context["bit_depth"] = bit_depth
        return context
