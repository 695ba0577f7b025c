"""Per-file pipeline orchestrator: split -> transcribe -> merge."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import uuid
from dataclasses import replace

from chunkscribe.config import Settings
from chunkscribe.error_codes import ErrorCode
from chunkscribe.exceptions import ChunkscribeError, ProviderError, StageExecutionError
from chunkscribe.models.job import JobStage, JobStatus, PipelineJob, stage_progress
from chunkscribe.models.transcript import Transcript
from chunkscribe.pipeline.concurrency import AdmissionGate
from chunkscribe.pipeline.context import JobUpdateHook, PipelineContext, ProgressCallback
from chunkscribe.providers.asr.base import ASRProvider
from chunkscribe.providers.audio.base import AudioDecoder
from chunkscribe.providers.registry import get_asr_provider, get_audio_decoder
from chunkscribe.services.uploads import suggest_job_options
from chunkscribe.stages.merge import MergeStage
from chunkscribe.stages.split import SplitStage
from chunkscribe.stages.transcribe import TranscribeStage

logger = logging.getLogger(__name__)


class _JobProgressReporter:
    def __init__(
        self,
        *,
        status: JobStatus,
        notify_update: JobUpdateHook,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._status = status
        self._notify_update = notify_update
        self._on_progress = on_progress
        self._last_done = 0

    async def segment_settled(self, done: int, total: int, failed: int) -> None:
        # Retry waves re-settle segments that already counted as failed.
        done = max(self._last_done, int(done))
        self._last_done = done

        self._status.segments_total = int(total)
        self._status.segments_processed = done
        self._status.segments_failed = int(failed)
        self._status.progress = stage_progress(JobStage.TRANSCRIBING, done, total)
        self._status.message = f"transcribing {done}/{total}"

        if self._on_progress is not None:
            result = self._on_progress(done, total)
            if inspect.isawaitable(result):
                await result
        await self._notify_update(self._status)


class PipelineOrchestrator:
    """Run one recording through the pipeline and report its `JobStatus`.

    Collaborators that are not injected are built from `settings` for each run
    and closed afterwards. An injected `gate` is used as-is, which lets several
    orchestrators share one global limit.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        decoder: AudioDecoder | None = None,
        provider: ASRProvider | None = None,
        gate: AdmissionGate | None = None,
        on_update: JobUpdateHook | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.settings = settings
        self._decoder = decoder
        self._provider = provider
        self._gate = gate
        self._on_update = on_update
        self._on_progress = on_progress
        self._cancelled = False
        self._job: PipelineJob | None = None
        self.status = JobStatus(job_id="")

    async def _notify_update(self, status: JobStatus) -> None:
        if self._on_update is not None:
            await self._on_update(replace(status))

    async def _enter(self, stage: JobStage, message: str) -> None:
        self.status.stage = stage
        self.status.progress = stage_progress(stage)
        self.status.message = message
        await self._notify_update(self.status)

    def cancel(self) -> None:
        """Stop dispatching new calls; the running `run()` returns None."""
        self._cancelled = True
        if self._job is not None:
            self._job.cancel()
        logger.info("job cancel requested (job_id=%s)", self.status.job_id)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @staticmethod
    def _code_value(code: ErrorCode | str) -> str:
        return code.value if isinstance(code, ErrorCode) else str(code)

    @classmethod
    def _infer_error_code(cls, stage: JobStage, exc: BaseException) -> str:
        if isinstance(exc, StageExecutionError) and exc.error_code is not None:
            return cls._code_value(exc.error_code)
        if isinstance(exc, ProviderError) and exc.error_code is not None:
            return cls._code_value(exc.error_code)
        if isinstance(exc, ChunkscribeError) and getattr(exc, "error_code", None) is not None:
            return cls._code_value(exc.error_code)

        if stage == JobStage.SPLITTING:
            return ErrorCode.SPLIT_FAILED.value
        if stage == JobStage.TRANSCRIBING:
            return ErrorCode.ASR_FAILED.value
        if stage == JobStage.MERGING:
            return ErrorCode.MERGE_FAILED.value
        return ErrorCode.UNKNOWN.value

    @staticmethod
    def _infer_error_message(exc: BaseException) -> str:
        if isinstance(exc, (StageExecutionError, ProviderError)):
            return str(exc.message or "")
        return str(exc)

    async def _return_to_idle(self, job_id: str) -> None:
        logger.info("job cancelled (job_id=%s, stage=%s)", job_id, self.status.stage.value)
        self.status.stage = JobStage.IDLE
        self.status.progress = stage_progress(JobStage.IDLE)
        self.status.message = "cancelled"
        await self._notify_update(self.status)

    async def run(
        self,
        audio: bytes,
        *,
        filename: str | None = None,
        language: str | None = None,
        model: str | None = None,
        job_id: str | None = None,
        segment_duration_s: float | None = None,
        overlap_s: float | None = None,
        bit_depth: int | None = None,
    ) -> Transcript | None:
        """Transcribe one recording.

        Returns the merged transcript, or None when the job was cancelled.
        Errors in splitting or merging, and rejected credentials, put the job
        in the `error` state and are re-raised.
        """
        job_id = str(job_id or uuid.uuid4())
        self._cancelled = False
        self._job = None
        self.status = JobStatus(job_id=job_id)

        width = self.settings.concurrency_asr
        if segment_duration_s is None:
            segment_duration_s = float(self.settings.segment.duration_s)
            if self.settings.pipeline.auto_tune:
                tuned = suggest_job_options(
                    len(audio), segment_duration_s=segment_duration_s, width=width
                )
                segment_duration_s, width = tuned.segment_duration_s, tuned.width

        context: PipelineContext = {
            "job_id": job_id,
            "filename": filename,
            "audio_bytes": audio,
            "source_language": language if language is not None else self.settings.asr.language,
            "model": model,
            "segment_duration_s": float(segment_duration_s),
            "overlap_s": float(overlap_s if overlap_s is not None else self.settings.segment.overlap_s),
            "bit_depth": int(bit_depth or self.settings.segment.bit_depth),
        }

        decoder = self._decoder
        owns_decoder = decoder is None
        provider = self._provider
        owns_provider = provider is None
        started_at = time.monotonic()
        stage = JobStage.SPLITTING

        try:
            logger.info(
                "job start (job_id=%s, file=%s, bytes=%d, segment_s=%.1f, width=%d)",
                job_id,
                filename or "<bytes>",
                len(audio),
                float(segment_duration_s),
                width,
            )
            await self._enter(JobStage.SPLITTING, "splitting audio")
            if decoder is None:
                decoder = get_audio_decoder(self.settings.audio.model_dump())
            context = await SplitStage(self.settings, decoder).execute(context)
            if self._cancelled:
                await self._return_to_idle(job_id)
                return None

            job = PipelineJob(job_id=job_id, segments=list(context["segments"]))
            self._job = job
            context["job"] = job
            self.status.segments_total = job.total

            stage = JobStage.TRANSCRIBING
            await self._enter(JobStage.TRANSCRIBING, f"transcribing 0/{job.total}")
            if provider is None:
                provider = get_asr_provider(
                    {**self.settings.asr.model_dump(), "max_concurrent": width}
                )
            gate = self._gate or AdmissionGate.from_settings(self.settings, width=width)
            reporter = _JobProgressReporter(
                status=self.status,
                notify_update=self._notify_update,
                on_progress=self._on_progress,
            )
            context = await TranscribeStage(self.settings, provider, gate).execute(
                context, progress_reporter=reporter
            )
            if self._cancelled or job.cancelled:
                await self._return_to_idle(job_id)
                return None

            stage = JobStage.MERGING
            await self._enter(JobStage.MERGING, "merging transcripts")
            context = await MergeStage(self.settings).execute(context)
            transcript = context["transcript"]

            failed = list(context.get("failed_segment_ids") or [])
            succeeded = job.total - len(failed)
            self.status.stage = JobStage.COMPLETED
            self.status.progress = stage_progress(JobStage.COMPLETED)
            self.status.segments_failed = len(failed)
            if failed:
                self.status.message = f"completed ({succeeded}/{job.total} segments transcribed)"
            else:
                self.status.message = "completed"
            await self._notify_update(self.status)
            logger.info(
                "job done (job_id=%s, segments=%d, failed=%d, elapsed_s=%.2f)",
                job_id,
                job.total,
                len(failed),
                time.monotonic() - started_at,
            )
            return transcript
        except asyncio.CancelledError:
            self.status.stage = JobStage.IDLE
            self.status.message = "cancelled"
            raise
        except Exception as exc:
            self.status.stage = JobStage.ERROR
            self.status.error_code = self._infer_error_code(stage, exc)
            self.status.error_message = self._infer_error_message(exc)
            self.status.message = f"{stage.value} failed"
            logger.exception(
                "job failed (job_id=%s, stage=%s, error_code=%s)",
                job_id,
                stage.value,
                self.status.error_code,
            )
            await self._notify_update(self.status)
            raise
        finally:
            self._job = None
            if owns_provider and provider is not None:
                await provider.close()
            if owns_decoder and decoder is not None:
                await decoder.close()
