"""Core data models for chunkscribe."""

from chunkscribe.models.job import JobStage, JobStatus, PipelineJob, SegmentFailure
from chunkscribe.models.segment import Segment
from chunkscribe.models.transcript import (
    ASRResult,
    Transcript,
    TranscriptFragment,
    TranscriptSpan,
    WordSpan,
)
from chunkscribe.models.waveform import Waveform

__all__ = [
    "ASRResult",
    "JobStage",
    "JobStatus",
    "PipelineJob",
    "Segment",
    "SegmentFailure",
    "Transcript",
    "TranscriptFragment",
    "TranscriptSpan",
    "Waveform",
    "WordSpan",
]
