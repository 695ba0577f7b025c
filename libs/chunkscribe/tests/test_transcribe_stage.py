from __future__ import annotations

import time
from collections import Counter

import numpy as np
import pytest

from chunkscribe.exceptions import AuthError, PayloadTooLargeError, TransientError
from chunkscribe.models.job import PipelineJob
from chunkscribe.models.segment import Segment
from chunkscribe.models.transcript import ASRResult, WordSpan
from chunkscribe.models.waveform import Waveform
from chunkscribe.pipeline.concurrency import AdmissionGate
from chunkscribe.stages.transcribe import TranscribeStage
from chunkscribe.utils.wav import decode_wav, encode_wav


def _segments(count: int, *, seconds: float = 1.0, sample_rate: int = 100) -> list[Segment]:
    n = int(seconds * sample_rate)
    out: list[Segment] = []
    for i in range(count):
        # Each segment carries its index as a constant level so fakes can tell them apart.
        samples = np.full((1, n), (i + 1) / 100.0, dtype=np.float32)
        start = i * (seconds - 0.1)
        out.append(
            Segment(
                index=i,
                start=start,
                end=start + seconds,
                duration=seconds,
                payload=encode_wav(Waveform(sample_rate=sample_rate, samples=samples)),
                sample_rate=sample_rate,
            )
        )
    return out


def _index_of(payload: bytes) -> int:
    return int(round(float(decode_wav(payload).samples[0, 0]) * 100)) - 1


class _ScriptedProvider:
    """Fails each segment according to `failures[index]`, one error per call."""

    provider = "fake"

    def __init__(self, failures: dict[int, list[Exception]] | None = None) -> None:
        self.failures = {k: list(v) for k, v in (failures or {}).items()}
        self.calls: Counter[int] = Counter()
        self.payload_sizes: dict[int, list[int]] = {}

    async def transcribe(self, payload: bytes, *, language=None, model=None) -> ASRResult:  # noqa: ANN001
        index = _index_of(payload)
        self.calls[index] += 1
        self.payload_sizes.setdefault(index, []).append(len(payload))
        pending = self.failures.get(index) or []
        if pending:
            raise pending.pop(0)
        return ASRResult(text=f"seg{index}", words=[WordSpan(text=f"seg{index}", start=0.2, end=0.4)])

    async def close(self) -> None:
        return None


class _Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[int, int, int]] = []

    async def segment_settled(self, done: int, total: int, failed: int) -> None:
        self.calls.append((done, total, failed))


def _context(count: int) -> dict:
    return {"job_id": "job-1", "job": PipelineJob(job_id="job-1", segments=_segments(count))}


@pytest.mark.asyncio
async def test_all_segments_succeed(settings) -> None:
    provider = _ScriptedProvider()
    stage = TranscribeStage(settings, provider, AdmissionGate(width=3))
    recorder = _Recorder()

    ctx = await stage.execute(_context(5), progress_reporter=recorder)

    assert [f.segment_index for f in ctx["fragments"]] == [0, 1, 2, 3, 4]
    assert ctx["failed_segment_ids"] == []
    assert dict(provider.calls) == {i: 1 for i in range(5)}
    assert [c[0] for c in recorder.calls] == [1, 2, 3, 4, 5]
    assert recorder.calls[-1] == (5, 5, 0)


@pytest.mark.asyncio
async def test_transient_failure_recovers_in_retry_wave(settings) -> None:
    provider = _ScriptedProvider({1: [TransientError("fake", "503")]})
    stage = TranscribeStage(settings, provider, AdmissionGate(width=2))

    ctx = await stage.execute(_context(3))

    assert ctx["failed_segment_ids"] == []
    assert [f.text for f in ctx["fragments"]] == ["seg0", "seg1", "seg2"]
    assert provider.calls[1] == 2


@pytest.mark.asyncio
async def test_segment_failing_every_time_uses_three_attempts(settings) -> None:
    provider = _ScriptedProvider({2: [TransientError("fake", "503") for _ in range(10)]})
    stage = TranscribeStage(settings, provider, AdmissionGate(width=2))
    recorder = _Recorder()

    ctx = await stage.execute(_context(4), progress_reporter=recorder)

    assert provider.calls[2] == 3
    assert ctx["failed_segment_ids"] == [2]
    assert [f.segment_index for f in ctx["fragments"]] == [0, 1, 3]
    assert ctx["job"].failed[2].attempts == 3
    assert all(done <= total for done, total, _ in recorder.calls)
    assert recorder.calls[-1] == (4, 4, 1)


@pytest.mark.asyncio
async def test_retry_budget_follows_settings(settings) -> None:
    settings.pipeline.max_segment_retries = 0
    provider = _ScriptedProvider({0: [RuntimeError("unexpected")]})
    stage = TranscribeStage(settings, provider, AdmissionGate(width=1))

    ctx = await stage.execute(_context(2))

    assert provider.calls[0] == 1
    assert ctx["failed_segment_ids"] == [0]


@pytest.mark.asyncio
async def test_auth_error_stops_dispatch_and_is_raised(settings) -> None:
    provider = _ScriptedProvider({0: [AuthError("fake", "HTTP 401")]})
    stage = TranscribeStage(settings, provider, AdmissionGate(width=1))
    context = _context(4)

    with pytest.raises(AuthError):
        await stage.execute(context)

    assert sum(provider.calls.values()) == 1
    assert context["job"].stopped


@pytest.mark.asyncio
async def test_payload_too_large_is_retried_at_lower_bit_depth(settings) -> None:
    provider = _ScriptedProvider({1: [PayloadTooLargeError("fake", "HTTP 413")]})
    stage = TranscribeStage(settings, provider, AdmissionGate(width=2))

    ctx = await stage.execute(_context(2))

    assert ctx["failed_segment_ids"] == []
    assert provider.calls[1] == 2
    first, second = provider.payload_sizes[1]
    assert (first - 44) == 2 * (second - 44)
    assert ctx["job"].segment(1).bit_depth == 8


@pytest.mark.asyncio
async def test_payload_too_large_at_smallest_depth_is_permanent(settings) -> None:
    provider = _ScriptedProvider(
        {0: [PayloadTooLargeError("fake", "HTTP 413"), PayloadTooLargeError("fake", "HTTP 413")]}
    )
    stage = TranscribeStage(settings, provider, AdmissionGate(width=1))

    ctx = await stage.execute(_context(1))

    # 16-bit, then 8-bit, then nothing smaller is left.
    assert provider.calls[0] == 2
    assert ctx["failed_segment_ids"] == [0]
    assert ctx["fragments"] == []


@pytest.mark.asyncio
async def test_cancelled_job_dispatches_nothing(settings) -> None:
    provider = _ScriptedProvider()
    stage = TranscribeStage(settings, provider, AdmissionGate(width=2))
    context = _context(3)
    context["job"].cancel()

    ctx = await stage.execute(context)

    assert sum(provider.calls.values()) == 0
    assert ctx["fragments"] == []


class _StopsJobProvider(_ScriptedProvider):
    """Stops the job from inside its first call, by cancel or by auth rejection."""

    def __init__(self, job: PipelineJob, mode: str) -> None:
        super().__init__()
        self.job = job
        self.mode = mode

    async def transcribe(self, payload: bytes, *, language=None, model=None) -> ASRResult:  # noqa: ANN001
        self.calls[_index_of(payload)] += 1
        if self.mode == "auth":
            raise AuthError("fake", "HTTP 401")
        self.job.cancel()
        return ASRResult(text="partial")


@pytest.mark.asyncio
@pytest.mark.parametrize("mode", ["cancel", "auth"])
async def test_stopped_job_releases_queue_without_waiting_out_rate_floor(settings, mode: str) -> None:
    context = _context(11)
    provider = _StopsJobProvider(context["job"], mode)
    gate = AdmissionGate(width=1, min_interval_s=0.2)
    stage = TranscribeStage(settings, provider, gate)

    started = time.monotonic()
    if mode == "auth":
        with pytest.raises(AuthError):
            await stage.execute(context)
    else:
        await stage.execute(context)
    elapsed = time.monotonic() - started

    assert elapsed < 0.5
    assert gate.admitted_total == 1
    assert sum(provider.calls.values()) == 1
    assert gate.snapshot().active == 0
