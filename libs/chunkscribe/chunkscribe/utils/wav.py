"""Minimal RIFF/WAVE codec for segment payloads and decoded audio.

Encoding always produces the canonical 44-byte header followed by
interleaved little-endian PCM. Decoding accepts PCM (8/16/24/32-bit),
IEEE float (32/64-bit) and WAVE_FORMAT_EXTENSIBLE, and tolerates the
placeholder chunk sizes ffmpeg writes when streaming to a pipe.
"""

from __future__ import annotations

import struct

import numpy as np

from chunkscribe.exceptions import DecodeError
from chunkscribe.models.waveform import Waveform

SUPPORTED_BIT_DEPTHS = (8, 16, 24, 32)

_WAVE_FORMAT_PCM = 0x0001
_WAVE_FORMAT_IEEE_FLOAT = 0x0003
_WAVE_FORMAT_EXTENSIBLE = 0xFFFE

_HEADER_STRUCT = struct.Struct("<4sI4s4sIHHIIHH4sI")
_CHUNK_STRUCT = struct.Struct("<4sI")
_FMT_STRUCT = struct.Struct("<HHIIHH")


def _scale(bit_depth: int) -> float:
    return float(2 ** (bit_depth - 1) - 1)


def is_wav(data: bytes) -> bool:
    return len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WAVE"


def _quantize(samples: np.ndarray, bit_depth: int) -> bytes:
    # (channels, n) -> interleaved (n, channels)
    interleaved = np.clip(samples.T.astype(np.float64), -1.0, 1.0)
    scaled = np.round(interleaved * _scale(bit_depth))
    if bit_depth == 8:
        return (scaled.astype(np.int16) + 128).astype(np.uint8).tobytes()
    if bit_depth == 16:
        return scaled.astype("<i2").tobytes()
    if bit_depth == 24:
        packed = scaled.astype("<i4").reshape(-1).view(np.uint8).reshape(-1, 4)[:, :3]
        return packed.tobytes()
    return scaled.astype("<i4").tobytes()


def encode_wav(waveform: Waveform, bit_depth: int = 16) -> bytes:
    """Encode a waveform as a self-contained PCM WAV file."""
    if bit_depth not in SUPPORTED_BIT_DEPTHS:
        raise ValueError(f"unsupported bit depth: {bit_depth}")

    channels = waveform.channel_count
    block_align = channels * (bit_depth // 8)
    data = _quantize(waveform.samples, bit_depth)
    header = _HEADER_STRUCT.pack(
        b"RIFF",
        36 + len(data),
        b"WAVE",
        b"fmt ",
        16,
        _WAVE_FORMAT_PCM,
        channels,
        int(waveform.sample_rate),
        int(waveform.sample_rate) * block_align,
        block_align,
        bit_depth,
        b"data",
        len(data),
    )
    return header + data


def _dequantize(raw: bytes, *, fmt: int, bit_depth: int) -> np.ndarray:
    if fmt == _WAVE_FORMAT_IEEE_FLOAT:
        if bit_depth == 32:
            return np.frombuffer(raw, dtype="<f4").astype(np.float64)
        if bit_depth == 64:
            return np.frombuffer(raw, dtype="<f8")
        raise DecodeError(f"unsupported float bit depth: {bit_depth}")

    if bit_depth == 8:
        values = np.frombuffer(raw, dtype=np.uint8).astype(np.float64) - 128.0
    elif bit_depth == 16:
        values = np.frombuffer(raw, dtype="<i2").astype(np.float64)
    elif bit_depth == 24:
        b = np.frombuffer(raw, dtype=np.uint8).reshape(-1, 3).astype(np.int32)
        v = b[:, 0] | (b[:, 1] << 8) | (b[:, 2] << 16)
        v = np.where(v >= 0x800000, v - 0x1000000, v)
        values = v.astype(np.float64)
    elif bit_depth == 32:
        values = np.frombuffer(raw, dtype="<i4").astype(np.float64)
    else:
        raise DecodeError(f"unsupported PCM bit depth: {bit_depth}")
    return values / _scale(bit_depth)


def decode_wav(data: bytes) -> Waveform:
    """Parse WAV bytes into a Waveform."""
    if not is_wav(data):
        raise DecodeError("not a RIFF/WAVE payload")

    fmt: tuple[int, int, int, int] | None = None
    pcm: bytes | None = None
    pos = 12
    while pos + _CHUNK_STRUCT.size <= len(data):
        chunk_id, size = _CHUNK_STRUCT.unpack_from(data, pos)
        body_start = pos + _CHUNK_STRUCT.size
        if chunk_id == b"fmt ":
            if size < _FMT_STRUCT.size:
                raise DecodeError("fmt chunk too short")
            audio_format, channels, sample_rate, _byte_rate, block_align, bits = _FMT_STRUCT.unpack_from(
                data, body_start
            )
            if audio_format == _WAVE_FORMAT_EXTENSIBLE:
                if size < 40:
                    raise DecodeError("extensible fmt chunk too short")
                # SubFormat GUID starts after cbSize/validBits/channelMask; first 2 bytes are the format tag.
                (audio_format,) = struct.unpack_from("<H", data, body_start + 24)
            fmt = (int(audio_format), int(channels), int(sample_rate), int(bits))
            if block_align <= 0:
                raise DecodeError("invalid block_align")
        elif chunk_id == b"data":
            if fmt is None:
                raise DecodeError("data chunk before fmt chunk")
            remaining = len(data) - body_start
            if size == 0 or size > remaining:
                size = remaining
            pcm = data[body_start : body_start + size]
            break
        pos = body_start + size + (size & 1)

    if fmt is None:
        raise DecodeError("missing fmt chunk")
    if pcm is None:
        raise DecodeError("missing data chunk")

    audio_format, channels, sample_rate, bits = fmt
    if audio_format not in (_WAVE_FORMAT_PCM, _WAVE_FORMAT_IEEE_FLOAT):
        raise DecodeError(f"unsupported WAV format tag: {audio_format:#06x}")
    if channels < 1 or sample_rate <= 0:
        raise DecodeError(f"invalid WAV header (channels={channels}, sample_rate={sample_rate})")

    frame_bytes = channels * (bits // 8)
    if frame_bytes <= 0:
        raise DecodeError(f"invalid bit depth: {bits}")
    usable = len(pcm) - (len(pcm) % frame_bytes)
    values = _dequantize(pcm[:usable], fmt=audio_format, bit_depth=bits)
    samples = np.clip(values, -1.0, 1.0).astype(np.float32).reshape(-1, channels).T
    return Waveform(sample_rate=sample_rate, samples=samples)
