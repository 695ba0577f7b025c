"""Provider abstractions for external services."""

from chunkscribe.providers.registry import get_asr_provider, get_audio_decoder

__all__ = ["get_asr_provider", "get_audio_decoder"]
