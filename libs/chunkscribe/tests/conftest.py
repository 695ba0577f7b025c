from __future__ import annotations

import numpy as np
import pytest

from chunkscribe.config import Settings
from chunkscribe.models.waveform import Waveform


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(_env_file=None, log_dir=str(tmp_path / "logs"))


@pytest.fixture()
def make_waveform():
    def _make(duration_s: float, *, sample_rate: int = 1000, channels: int = 1) -> Waveform:
        n = int(round(duration_s * sample_rate))
        t = np.arange(n, dtype=np.float64) / sample_rate
        tone = 0.5 * np.sin(2 * np.pi * 5.0 * t)
        samples = np.tile(tone, (channels, 1)).astype(np.float32)
        return Waveform(sample_rate=sample_rate, samples=samples)

    return _make
