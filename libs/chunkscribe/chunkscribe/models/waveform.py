"""Decoded audio held in memory."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, eq=False)
class Waveform:
    """Canonical decoded audio.

    `samples` has shape ``(channels, length)``, dtype float32, values in
    [-1, 1]. The array is marked read-only on construction.
    """

    sample_rate: int
    samples: np.ndarray

    def __post_init__(self) -> None:
        if int(self.sample_rate) <= 0:
            raise ValueError("sample_rate must be > 0")
        arr = np.asarray(self.samples, dtype=np.float32)
        if arr.ndim == 1:
            arr = arr.reshape(1, -1)
        if arr.ndim != 2 or arr.shape[0] < 1:
            raise ValueError("samples must have shape (channels, length)")
        if arr.flags.writeable:
            arr = arr.copy()
            arr.setflags(write=False)
        object.__setattr__(self, "samples", arr)

    @property
    def channel_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def length(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration_s(self) -> float:
        return self.length / float(self.sample_rate)

    def channel(self, index: int) -> np.ndarray:
        return self.samples[index]

    def slice(self, start_sample: int, end_sample: int) -> "Waveform":
        """Return a view over ``[start_sample, end_sample)``."""
        start = max(0, int(start_sample))
        end = min(self.length, int(end_sample))
        if end < start:
            end = start
        return Waveform(sample_rate=self.sample_rate, samples=self.samples[:, start:end])
