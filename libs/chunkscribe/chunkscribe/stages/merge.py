"""Merge stage: fragments -> recording-absolute transcript."""

from __future__ import annotations

import logging
from typing import cast

from chunkscribe.config import Settings
from chunkscribe.error_codes import ErrorCode
from chunkscribe.exceptions import StageExecutionError
from chunkscribe.pipeline.context import PipelineContext
from chunkscribe.stages.base import Stage
from chunkscribe.utils.transcript_merger import merge_fragments

logger = logging.getLogger(__name__)


class MergeStage(Stage):
    name = "merging"

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def validate_input(self, context: PipelineContext) -> bool:
        return "fragments" in context

    async def execute(self, context: PipelineContext) -> PipelineContext:
        context = cast(PipelineContext, dict(context))
        fragments = list(context.get("fragments") or [])
        try:
            transcript = merge_fragments(
                fragments,
                default_language=str(self.settings.pipeline.default_language),
            )
        except (TypeError, ValueError, AttributeError) as exc:
            raise StageExecutionError(
                self.name,
                f"failed to merge {len(fragments)} fragments: {exc}",
                job_id=context.get("job_id"),
                error_code=ErrorCode.MERGE_FAILED,
            ) from exc

        logger.info(
            "merge done (fragments=%d, spans=%d, words=%d, duration_s=%.2f)",
            len(fragments),
            len(transcript.segments),
            len(transcript.words),
            transcript.duration,
        )
        context["transcript"] = transcript
        return context
