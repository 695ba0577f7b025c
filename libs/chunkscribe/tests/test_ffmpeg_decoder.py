from __future__ import annotations

import pytest

import chunkscribe.providers.audio.ffmpeg as ffmpeg_module
from chunkscribe.exceptions import DecodeError, DecoderUnavailableError
from chunkscribe.providers.audio.ffmpeg import FFmpegDecoder
from chunkscribe.providers.registry import get_audio_decoder
from chunkscribe.utils.subprocess import RunResult
from chunkscribe.utils.wav import encode_wav


@pytest.mark.asyncio
async def test_wav_is_decoded_without_ffmpeg(make_waveform, monkeypatch) -> None:
    async def _no_subprocess(*_args, **_kwargs):  # noqa: ANN002, ANN003
        raise AssertionError("ffmpeg should not run for WAV input")

    monkeypatch.setattr(ffmpeg_module, "run_subprocess", _no_subprocess)
    wave = make_waveform(2.0, sample_rate=8000, channels=2)

    decoded = await FFmpegDecoder().decode(encode_wav(wave), "a.wav")

    assert decoded.sample_rate == 8000
    assert decoded.channel_count == 2
    assert decoded.duration_s == pytest.approx(2.0)


@pytest.mark.asyncio
async def test_compressed_input_goes_through_ffmpeg(make_waveform, monkeypatch) -> None:
    wav_out = encode_wav(make_waveform(1.5, sample_rate=16000))
    seen_args: list[list[str]] = []

    async def _fake_run(args, *, input_bytes=None, timeout_s=None):  # noqa: ANN001
        seen_args.append(list(args))
        return RunResult(returncode=0, stdout=wav_out, stderr=b"")

    monkeypatch.setattr(ffmpeg_module, "run_subprocess", _fake_run)
    decoder = FFmpegDecoder(ffmpeg_bin="ffmpeg", timeout_s=30.0)

    decoded = await decoder.decode(b"ID3\x04fake-mp3-bytes", "talk.mp3")

    assert decoded.duration_s == pytest.approx(1.5)
    args = seen_args[0]
    assert args[-1] == "pipe:1"
    assert "pcm_f32le" in args
    assert args[args.index("-i") + 1].endswith("input.mp3")


@pytest.mark.asyncio
async def test_ffmpeg_failure_is_a_decode_error(monkeypatch) -> None:
    async def _fake_run(args, *, input_bytes=None, timeout_s=None):  # noqa: ANN001
        return RunResult(returncode=1, stdout=b"", stderr=b"Invalid data found when processing input")

    monkeypatch.setattr(ffmpeg_module, "run_subprocess", _fake_run)

    with pytest.raises(DecodeError, match="Invalid data"):
        await FFmpegDecoder().decode(b"not audio", "x.mp3")


@pytest.mark.asyncio
async def test_missing_ffmpeg_is_reported(monkeypatch) -> None:
    decoder = FFmpegDecoder()
    monkeypatch.setattr(decoder, "ffmpeg_bin", "/nonexistent/bin/ffmpeg")

    with pytest.raises(DecoderUnavailableError):
        await decoder.decode(b"OggS-not-really", "x.ogg")


@pytest.mark.asyncio
async def test_corrupt_wav_without_ffmpeg_stays_a_decode_error(monkeypatch) -> None:
    decoder = FFmpegDecoder()
    monkeypatch.setattr(decoder, "ffmpeg_bin", "/nonexistent/bin/ffmpeg")

    with pytest.raises(DecodeError) as excinfo:
        await decoder.decode(b"RIFF\x24\0\0\0WAVEjunk" + b"\0" * 8, "x.wav")

    assert isinstance(excinfo.value.__cause__, DecoderUnavailableError)


@pytest.mark.asyncio
async def test_empty_payload_is_rejected() -> None:
    with pytest.raises(DecodeError):
        await FFmpegDecoder().decode(b"", "x.mp3")


def test_registry_builds_decoder_from_audio_config(settings) -> None:
    decoder = get_audio_decoder(settings.audio.model_dump())
    assert isinstance(decoder, FFmpegDecoder)
    assert decoder.timeout_s == settings.audio.decode_timeout_s
