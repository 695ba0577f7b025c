"""Segment model (one slice of the source recording)."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Segment:
    """A time-bounded, possibly overlapping slice with its WAV payload."""

    index: int
    start: float
    end: float
    duration: float
    payload: bytes = field(repr=False)
    bit_depth: int = 16
    sample_rate: int = 16000
    channel_count: int = 1

    @property
    def payload_size(self) -> int:
        return len(self.payload)
