"""Audio decoding Provider implementations."""

from chunkscribe.providers.audio.base import AudioDecoder
from chunkscribe.providers.audio.ffmpeg import FFmpegDecoder

__all__ = ["AudioDecoder", "FFmpegDecoder"]
