"""Transcription results: per-segment fragments and the merged transcript."""

from __future__ import annotations

from dataclasses import dataclass, field

from chunkscribe.models.segment import Segment


@dataclass
class TranscriptSpan:
    """A sub-segment span (sentence-ish unit) as returned by the service."""

    id: int
    start: float
    end: float
    text: str


@dataclass
class WordSpan:
    text: str
    start: float
    end: float


@dataclass
class ASRResult:
    """Parsed response for a single transcription request (segment-local times)."""

    text: str
    segments: list[TranscriptSpan] = field(default_factory=list)
    words: list[WordSpan] = field(default_factory=list)
    language: str | None = None
    duration: float = 0.0


@dataclass
class TranscriptFragment:
    """Transcription of one Segment. Span times are relative to `segment_start`."""

    segment_index: int
    segment_start: float
    segment_end: float
    text: str
    segments: list[TranscriptSpan] = field(default_factory=list)
    words: list[WordSpan] = field(default_factory=list)
    language: str | None = None
    duration: float = 0.0

    @classmethod
    def from_result(cls, segment: Segment, result: ASRResult) -> "TranscriptFragment":
        return cls(
            segment_index=int(segment.index),
            segment_start=float(segment.start),
            segment_end=float(segment.end),
            text=str(result.text or ""),
            segments=list(result.segments),
            words=list(result.words),
            language=result.language,
            duration=float(result.duration or 0.0),
        )


@dataclass
class Transcript:
    """Merged result with recording-absolute times."""

    text: str
    segments: list[TranscriptSpan] = field(default_factory=list)
    words: list[WordSpan] = field(default_factory=list)
    language: str = "ja"
    duration: float = 0.0
