"""Pipeline context typing.

The pipeline uses a shared context dict passed between stages. This module
defines the stable, known keys to improve type safety and readability.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol, TypedDict

from chunkscribe.models.job import JobStatus, PipelineJob
from chunkscribe.models.segment import Segment
from chunkscribe.models.transcript import Transcript, TranscriptFragment

# (completed_or_failed, total); may return an awaitable.
ProgressCallback = Callable[[int, int], Awaitable[None] | None]

JobUpdateHook = Callable[[JobStatus], Awaitable[None]]


class SegmentProgressReporter(Protocol):
    async def segment_settled(self, done: int, total: int, failed: int) -> None: ...


class PipelineContext(TypedDict, total=False):
    job_id: str
    filename: str | None
    audio_bytes: bytes
    source_language: str | None
    model: str | None

    segment_duration_s: float
    overlap_s: float
    bit_depth: int

    audio_duration_s: float
    segments: list[Segment]

    job: PipelineJob
    fragments: list[TranscriptFragment]
    failed_segment_ids: list[int]

    transcript: Transcript
