"""ASR provider implementations."""

from chunkscribe.providers.asr.base import ASRProvider
from chunkscribe.providers.asr.openai_whisper import OpenAIWhisperProvider

__all__ = ["ASRProvider", "OpenAIWhisperProvider"]
