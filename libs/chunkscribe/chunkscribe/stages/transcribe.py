"""Transcribe stage: bounded-parallel ASR over every segment, with retry waves."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import cast

from chunkscribe.config import Settings
from chunkscribe.exceptions import (
    AuthError,
    PayloadTooLargeError,
    StageExecutionError,
)
from chunkscribe.models.job import PipelineJob
from chunkscribe.models.transcript import TranscriptFragment
from chunkscribe.pipeline.concurrency import AdmissionGate, AdmissionWithdrawn
from chunkscribe.pipeline.context import PipelineContext, SegmentProgressReporter
from chunkscribe.providers.asr.base import ASRProvider
from chunkscribe.stages.base import Stage
from chunkscribe.utils.audio_segmenter import reencode_segment, smaller_bit_depth

logger = logging.getLogger(__name__)


class TranscribeStage(Stage):
    """Dispatch every segment through the admission gate and collect results.

    The first wave submits all segments in index order and waits for every one
    to settle. Retryable failures are then re-submitted in further waves, up to
    `max_segment_retries` waves. Segment failures never fail the stage; an
    `AuthError` stops dispatching and is re-raised once in-flight calls settle.

    Inputs: job, source_language, model. Outputs: fragments, failed_segment_ids.
    """

    name = "transcribing"

    def __init__(self, settings: Settings, provider: ASRProvider, gate: AdmissionGate) -> None:
        self.settings = settings
        self.provider = provider
        self.gate = gate
        self.max_segment_retries = int(settings.pipeline.max_segment_retries)

    def validate_input(self, context: PipelineContext) -> bool:
        job = context.get("job")
        return job is not None and job.total > 0

    async def execute(
        self,
        context: PipelineContext,
        progress_reporter: SegmentProgressReporter | None = None,
    ) -> PipelineContext:
        context = cast(PipelineContext, dict(context))
        job: PipelineJob | None = context.get("job")
        if job is None:
            raise StageExecutionError(self.name, "missing job; run the split stage first")

        language = context.get("source_language")
        model = context.get("model")
        max_attempts = 1 + self.max_segment_retries
        started_at = time.monotonic()

        async def _call(index: int) -> TranscriptFragment:
            segment = job.segment(index)
            job.mark_in_flight(index)
            result = await self.provider.transcribe(segment.payload, language=language, model=model)
            return TranscriptFragment.from_result(segment, result)

        async def _submit(index: int) -> None:
            if job.stopped:
                return
            try:
                # Queued submissions leave without a slot once the job stops.
                fragment = await self.gate.run(lambda: _call(index), should_skip=lambda: job.stopped)
            except AdmissionWithdrawn:
                return
            except AuthError as exc:
                logger.error("asr auth rejected (segment=%d): %s", index, exc)
                job.mark_failed(index, exc, retryable=False)
                job.abort(exc)
            except PayloadTooLargeError as exc:
                bit_depth = job.segment(index).bit_depth
                shrunk = await self._shrink(job, index)
                logger.warning(
                    "asr payload too large (segment=%d, bit_depth=%d, reencoded=%s): %s",
                    index,
                    bit_depth,
                    shrunk,
                    exc,
                )
                job.mark_failed(index, exc, retryable=shrunk)
            except Exception as exc:
                logger.warning(
                    "asr error (segment=%d, attempt=%d): %s",
                    index,
                    job.attempts.get(index, 0),
                    exc,
                )
                job.mark_failed(index, exc, retryable=True)
            else:
                job.mark_completed(index, fragment)
                logger.debug("asr segment done (segment=%d, chars=%d)", index, len(fragment.text))

            if progress_reporter is not None:
                await progress_reporter.segment_settled(job.settled, job.total, len(job.failed))

        logger.info(
            "asr start (segments=%d, width=%d, min_interval_s=%.2f)",
            job.total,
            self.gate.width,
            self.gate.min_interval_s,
        )
        await asyncio.gather(*[_submit(i) for i in sorted(job.pending)])

        for wave in range(1, self.max_segment_retries + 1):
            if job.stopped:
                break
            candidates = job.retry_candidates(max_attempts)
            if not candidates:
                break
            logger.info("asr retry wave %d (segments=%d)", wave, len(candidates))
            await asyncio.gather(*[_submit(i) for i in candidates])

        if job.abort_error is not None:
            raise job.abort_error

        failed = sorted(job.failed)
        if failed and not job.cancelled:
            logger.warning("asr segments failed permanently (count=%d, ids=%s)", len(failed), failed)
        logger.info(
            "asr done (ok=%d, failed=%d, total=%d, elapsed_s=%.2f)",
            len(job.completed),
            len(failed),
            job.total,
            time.monotonic() - started_at,
        )

        context["fragments"] = job.fragments()
        context["failed_segment_ids"] = failed
        return context

    async def _shrink(self, job: PipelineJob, index: int) -> bool:
        """Re-encode the segment one bit depth lower; False when impossible."""
        segment = job.segment(index)
        lower = smaller_bit_depth(segment.bit_depth)
        if lower is None:
            return False
        job.replace_segment(await asyncio.to_thread(reencode_segment, segment, lower))
        return True
