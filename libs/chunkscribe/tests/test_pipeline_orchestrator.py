from __future__ import annotations

import pytest

from chunkscribe.exceptions import AuthError, DecodeError, StageExecutionError, TransientError
from chunkscribe.models.job import JobStage
from chunkscribe.models.transcript import ASRResult, WordSpan
from chunkscribe.pipeline.concurrency import AdmissionGate
from chunkscribe.pipeline.orchestrator import PipelineOrchestrator
from chunkscribe.utils.wav import decode_wav


class _FakeDecoder:
    def __init__(self, waveform=None, error: Exception | None = None) -> None:  # noqa: ANN001
        self.waveform = waveform
        self.error = error
        self.on_decode = None
        self.closed = False

    async def decode(self, data: bytes, filename: str | None = None):  # noqa: ARG002
        if self.on_decode is not None:
            self.on_decode()
        if self.error is not None:
            raise self.error
        return self.waveform

    async def close(self) -> None:
        self.closed = True


class _FakeProvider:
    """Answers with one word at 1.0s; `fail_short` rejects the trailing short segment."""

    provider = "fake"

    def __init__(self, *, fail_short: bool = False, error: Exception | None = None) -> None:
        self.fail_short = fail_short
        self.error = error
        self.calls = 0
        self.on_call = None
        self.closed = False

    async def transcribe(self, payload: bytes, *, language=None, model=None) -> ASRResult:  # noqa: ANN001
        self.calls += 1
        if self.on_call is not None:
            self.on_call()
        if self.error is not None:
            raise self.error
        if self.fail_short and decode_wav(payload).duration_s < 30:
            raise TransientError("fake", "HTTP 500")
        return ASRResult(
            text="hello",
            words=[WordSpan(text="hello", start=1.0, end=1.5)],
            language=language or "en",
        )

    async def close(self) -> None:
        self.closed = True


def _orchestrator(settings, decoder, provider, **kwargs) -> PipelineOrchestrator:  # noqa: ANN001, ANN003
    return PipelineOrchestrator(
        settings,
        decoder=decoder,
        provider=provider,
        gate=AdmissionGate(width=3),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_run_end_to_end(settings, make_waveform) -> None:
    updates = []
    progress: list[tuple[int, int]] = []

    async def _on_update(status) -> None:  # noqa: ANN001
        updates.append(status)

    provider = _FakeProvider()
    orchestrator = _orchestrator(
        settings,
        _FakeDecoder(make_waveform(130.0, sample_rate=100)),
        provider,
        on_update=_on_update,
        on_progress=lambda done, total: progress.append((done, total)),
    )

    transcript = await orchestrator.run(b"audio", filename="talk.mp3", job_id="job-1")

    assert transcript is not None
    assert transcript.text == "hello hello hello"
    assert [w.start for w in transcript.words] == pytest.approx([1.0, 60.0, 119.0])
    assert transcript.duration == pytest.approx(130.0)
    assert transcript.language == "en"
    assert provider.calls == 3
    assert provider.closed is False

    status = orchestrator.status
    assert status.job_id == "job-1"
    assert status.stage == JobStage.COMPLETED
    assert status.progress == pytest.approx(100.0)
    assert status.message == "completed"
    assert (status.segments_total, status.segments_processed, status.segments_failed) == (3, 3, 0)

    assert progress == [(1, 3), (2, 3), (3, 3)]
    stages = [u.stage for u in updates]
    assert stages[0] == JobStage.SPLITTING
    assert stages[-1] == JobStage.COMPLETED
    assert stages.index(JobStage.TRANSCRIBING) < stages.index(JobStage.MERGING)
    percents = [u.progress for u in updates]
    assert percents == sorted(percents)
    # transcription occupies the 10-90 band
    assert max(u.progress for u in updates if u.stage == JobStage.TRANSCRIBING) == pytest.approx(90.0)


@pytest.mark.asyncio
async def test_async_progress_callback_is_awaited(settings, make_waveform) -> None:
    seen: list[int] = []

    async def _on_progress(done: int, total: int) -> None:  # noqa: ARG001
        seen.append(done)

    orchestrator = _orchestrator(
        settings,
        _FakeDecoder(make_waveform(61.0, sample_rate=100)),
        _FakeProvider(),
        on_progress=_on_progress,
    )
    await orchestrator.run(b"audio")

    assert seen == [1, 2]


@pytest.mark.asyncio
async def test_partial_failure_still_completes(settings, make_waveform) -> None:
    provider = _FakeProvider(fail_short=True)
    orchestrator = _orchestrator(settings, _FakeDecoder(make_waveform(130.0, sample_rate=100)), provider)

    transcript = await orchestrator.run(b"audio")

    assert transcript is not None
    assert transcript.text == "hello hello"
    assert provider.calls == 2 + 3
    status = orchestrator.status
    assert status.stage == JobStage.COMPLETED
    assert status.segments_failed == 1
    assert "2/3" in status.message


@pytest.mark.asyncio
async def test_decode_failure_ends_in_error(settings) -> None:
    decoder = _FakeDecoder(error=DecodeError("corrupt mp3 frame"))
    orchestrator = _orchestrator(settings, decoder, _FakeProvider())

    with pytest.raises(DecodeError):
        await orchestrator.run(b"junk", filename="broken.mp3")

    status = orchestrator.status
    assert status.stage == JobStage.ERROR
    assert status.error_code == "DECODE_FAILED"
    assert "corrupt" in (status.error_message or "")


@pytest.mark.asyncio
async def test_recording_too_short_for_a_segment_is_an_error(settings, make_waveform) -> None:
    provider = _FakeProvider()
    orchestrator = _orchestrator(settings, _FakeDecoder(make_waveform(0.4, sample_rate=100)), provider)

    with pytest.raises(StageExecutionError):
        await orchestrator.run(b"audio")

    assert orchestrator.status.stage == JobStage.ERROR
    assert orchestrator.status.error_code == "NO_SEGMENTS"
    assert provider.calls == 0


@pytest.mark.asyncio
async def test_auth_error_fails_the_job(settings, make_waveform) -> None:
    provider = _FakeProvider(error=AuthError("fake", "HTTP 401 Unauthorized"))
    orchestrator = PipelineOrchestrator(
        settings,
        decoder=_FakeDecoder(make_waveform(300.0, sample_rate=100)),
        provider=provider,
        gate=AdmissionGate(width=1),
    )

    with pytest.raises(AuthError):
        await orchestrator.run(b"audio")

    assert provider.calls == 1
    assert orchestrator.status.stage == JobStage.ERROR
    assert orchestrator.status.error_code == "ASR_AUTH_FAILED"


@pytest.mark.asyncio
async def test_cancel_during_transcription_returns_none(settings, make_waveform) -> None:
    provider = _FakeProvider()
    orchestrator = PipelineOrchestrator(
        settings,
        decoder=_FakeDecoder(make_waveform(300.0, sample_rate=100)),
        provider=provider,
        gate=AdmissionGate(width=1),
    )
    provider.on_call = orchestrator.cancel

    result = await orchestrator.run(b"audio")

    assert result is None
    assert provider.calls == 1
    assert orchestrator.status.stage == JobStage.IDLE


@pytest.mark.asyncio
async def test_cancel_during_splitting_skips_transcription(settings, make_waveform) -> None:
    decoder = _FakeDecoder(make_waveform(130.0, sample_rate=100))
    provider = _FakeProvider()
    orchestrator = _orchestrator(settings, decoder, provider)
    decoder.on_decode = orchestrator.cancel

    result = await orchestrator.run(b"audio")

    assert result is None
    assert provider.calls == 0
    assert orchestrator.status.stage == JobStage.IDLE
    assert orchestrator.status.message == "cancelled"


@pytest.mark.asyncio
async def test_owned_decoder_and_provider_are_built_from_settings(settings, make_waveform, monkeypatch) -> None:
    import chunkscribe.pipeline.orchestrator as orchestrator_module

    decoder = _FakeDecoder(make_waveform(10.0, sample_rate=100))
    provider = _FakeProvider()
    seen_config = {}

    def _fake_get_asr_provider(config):  # noqa: ANN001
        seen_config.update(config)
        return provider

    monkeypatch.setattr(orchestrator_module, "get_audio_decoder", lambda _config: decoder)
    monkeypatch.setattr(orchestrator_module, "get_asr_provider", _fake_get_asr_provider)
    settings.concurrency.min_interval_s = 0.0

    orchestrator = PipelineOrchestrator(settings)
    transcript = await orchestrator.run(b"audio", language="ja")

    assert transcript is not None
    assert transcript.language == "ja"
    assert seen_config["max_concurrent"] == 3
    assert decoder.closed and provider.closed


@pytest.mark.asyncio
async def test_large_files_use_longer_segments(settings, make_waveform) -> None:
    provider = _FakeProvider()
    orchestrator = _orchestrator(settings, _FakeDecoder(make_waveform(250.0, sample_rate=100)), provider)

    await orchestrator.run(b"\x00" * (51 * 1024 * 1024))

    # 120s windows with 1s overlap: starts 0, 119, 238
    assert provider.calls == 3
    assert orchestrator.status.segments_total == 3
