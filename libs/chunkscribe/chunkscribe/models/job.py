"""Per-file orchestration state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from chunkscribe.models.segment import Segment
from chunkscribe.models.transcript import TranscriptFragment


class JobStage(str, Enum):
    IDLE = "idle"
    SPLITTING = "splitting"
    TRANSCRIBING = "transcribing"
    MERGING = "merging"
    COMPLETED = "completed"
    ERROR = "error"


_STAGE_BASE_PROGRESS: dict[JobStage, float] = {
    JobStage.IDLE: 0.0,
    JobStage.SPLITTING: 10.0,
    JobStage.TRANSCRIBING: 10.0,
    JobStage.MERGING: 95.0,
    JobStage.COMPLETED: 100.0,
    JobStage.ERROR: 0.0,
}


@dataclass
class JobStatus:
    """Snapshot pushed to the UI collaborator."""

    job_id: str
    stage: JobStage = JobStage.IDLE
    progress: float = 0.0
    message: str = ""
    segments_total: int = 0
    segments_processed: int = 0
    segments_failed: int = 0
    error_code: str | None = None
    error_message: str | None = None


def stage_progress(stage: JobStage, processed: int = 0, total: int = 0) -> float:
    """Overall percent for a stage; transcription fills the 10-90 band."""
    base = _STAGE_BASE_PROGRESS[stage]
    if stage == JobStage.TRANSCRIBING and total > 0:
        return base + (processed / total * 100.0) * 0.8
    return base


@dataclass
class SegmentFailure:
    attempts: int
    error: BaseException
    retryable: bool


@dataclass
class PipelineJob:
    """Tracks which segments are pending, in flight, done or failed."""

    job_id: str
    segments: list[Segment]
    pending: set[int] = field(default_factory=set)
    in_flight: set[int] = field(default_factory=set)
    completed: dict[int, TranscriptFragment] = field(default_factory=dict)
    failed: dict[int, SegmentFailure] = field(default_factory=dict)
    attempts: dict[int, int] = field(default_factory=dict)
    cancelled: bool = False
    abort_error: BaseException | None = None

    def __post_init__(self) -> None:
        self._by_index = {int(s.index): s for s in self.segments}
        if not self.pending:
            self.pending = set(self._by_index)

    @property
    def total(self) -> int:
        return len(self.segments)

    @property
    def stopped(self) -> bool:
        """No further calls may be dispatched."""
        return self.cancelled or self.abort_error is not None

    @property
    def settled(self) -> int:
        return len(self.completed) + len(self.failed)

    def segment(self, index: int) -> Segment:
        return self._by_index[index]

    def replace_segment(self, segment: Segment) -> None:
        self._by_index[int(segment.index)] = segment
        self.segments = [self._by_index[i] for i in sorted(self._by_index)]

    def cancel(self) -> None:
        self.cancelled = True

    def abort(self, error: BaseException) -> None:
        if self.abort_error is None:
            self.abort_error = error

    def mark_in_flight(self, index: int) -> None:
        self.pending.discard(index)
        self.in_flight.add(index)
        self.attempts[index] = self.attempts.get(index, 0) + 1

    def mark_completed(self, index: int, fragment: TranscriptFragment) -> None:
        self.in_flight.discard(index)
        self.failed.pop(index, None)
        self.completed[index] = fragment

    def mark_failed(self, index: int, error: BaseException, *, retryable: bool) -> None:
        self.in_flight.discard(index)
        self.failed[index] = SegmentFailure(
            attempts=self.attempts.get(index, 0), error=error, retryable=retryable
        )

    def retry_candidates(self, max_attempts: int) -> list[int]:
        """Failed segments that may go into another wave, in index order."""
        return sorted(
            i for i, f in self.failed.items() if f.retryable and f.attempts < max_attempts
        )

    def fragments(self) -> list[TranscriptFragment]:
        return [self.completed[i] for i in sorted(self.completed)]
