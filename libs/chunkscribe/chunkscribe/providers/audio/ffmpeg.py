"""FFmpeg-based audio decoder."""

from __future__ import annotations

import asyncio
import logging
import subprocess
import tempfile
from pathlib import Path

from chunkscribe.exceptions import DecodeError, DecoderUnavailableError
from chunkscribe.models.waveform import Waveform
from chunkscribe.providers.audio.base import AudioDecoder
from chunkscribe.utils.ffmpeg import resolve_ffmpeg_bin
from chunkscribe.utils.subprocess import run_subprocess
from chunkscribe.utils.wav import decode_wav, is_wav

logger = logging.getLogger(__name__)


class FFmpegDecoder(AudioDecoder):
    """Decode any container/codec ffmpeg understands.

    WAV input is parsed in-process; everything else is converted by ffmpeg to
    32-bit float WAV on stdout at the source sample rate and channel count.
    """

    def __init__(self, ffmpeg_bin: str = "ffmpeg", timeout_s: float | None = 600.0) -> None:
        self.ffmpeg_bin = resolve_ffmpeg_bin(ffmpeg_bin)
        self.timeout_s = timeout_s

    async def decode(self, data: bytes, filename: str | None = None) -> Waveform:
        if not data:
            raise DecodeError("empty audio payload")

        if not is_wav(data):
            wav_bytes = await self._convert(data, filename)
            return await asyncio.to_thread(decode_wav, wav_bytes)

        try:
            return await asyncio.to_thread(decode_wav, data)
        except DecodeError as exc:
            native_error = exc
            logger.info("native wav decode failed (%s); retrying with ffmpeg", exc)

        # A broken RIFF file stays a decode error even when ffmpeg is absent.
        try:
            wav_bytes = await self._convert(data, filename)
        except DecoderUnavailableError as exc:
            raise native_error from exc
        return await asyncio.to_thread(decode_wav, wav_bytes)

    async def _convert(self, data: bytes, filename: str | None) -> bytes:
        suffix = Path(str(filename or "")).suffix or ".bin"
        with tempfile.TemporaryDirectory(prefix="chunkscribe_decode_") as tmp:
            input_path = Path(tmp) / f"input{suffix}"
            await asyncio.to_thread(input_path.write_bytes, data)
            args = [
                self.ffmpeg_bin,
                "-hide_banner",
                "-loglevel",
                "error",
                "-nostdin",
                "-i",
                str(input_path),
                "-vn",
                "-f",
                "wav",
                "-acodec",
                "pcm_f32le",
                "pipe:1",
            ]
            try:
                result = await run_subprocess(args, timeout_s=self.timeout_s)
            except (FileNotFoundError, PermissionError) as exc:
                raise DecoderUnavailableError(
                    f"ffmpeg binary not usable: {self.ffmpeg_bin}. "
                    "Install ffmpeg and ensure it is in PATH (or install `imageio-ffmpeg`, "
                    "or set AUDIO_FFMPEG_BIN)."
                ) from exc
            except subprocess.TimeoutExpired as exc:
                raise DecodeError(f"ffmpeg decode timed out after {self.timeout_s}s") from exc

        if not result.ok:
            raise DecodeError(f"ffmpeg failed (code={result.returncode}): {result.stderr_tail()}")
        if not is_wav(result.stdout):
            raise DecodeError("ffmpeg produced no audio stream")
        logger.debug("ffmpeg decoded %s (%d bytes in, %d bytes out)", filename, len(data), len(result.stdout))
        return result.stdout
