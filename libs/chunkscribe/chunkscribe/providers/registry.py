"""Provider factory and registry."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from chunkscribe.exceptions import ConfigurationError
from chunkscribe.providers.asr.base import ASRProvider
from chunkscribe.providers.audio.base import AudioDecoder


def get_asr_provider(config: Mapping[str, Any]) -> ASRProvider:
    """Get ASR provider based on configuration."""
    provider_type = str(config.get("provider", "openai_whisper")).strip().lower()

    match provider_type:
        case "openai_whisper" | "groq" | "openai":
            from chunkscribe.providers.asr.openai_whisper import OpenAIWhisperProvider

            api_key = str(config.get("api_key") or "").strip()
            if not api_key:
                raise ConfigurationError("ASR provider requires api_key (set ASR_API_KEY)")
            return OpenAIWhisperProvider(
                api_key=api_key,
                base_url=config.get("base_url"),
                model=str(config.get("model") or "whisper-large-v3-turbo"),
                timeout=float(config.get("timeout", 120.0)),
                max_connections=int(config.get("max_concurrent", 10)),
                max_attempts=int(config.get("max_attempts", 4)),
                base_delay_s=float(config.get("base_delay_s", 1.0)),
                max_jitter_s=float(config.get("max_jitter_s", 1.0)),
                rate_limit_margin_s=float(config.get("rate_limit_margin_s", 0.5)),
                max_payload_bytes=int(config.get("max_payload_bytes", 25 * 1024 * 1024)),
                provider=provider_type,
            )
        case _:
            raise ConfigurationError(f"Unknown ASR provider: {provider_type}")


def get_audio_decoder(config: Mapping[str, Any]) -> AudioDecoder:
    """Get audio decoder based on configuration."""
    from chunkscribe.providers.audio.ffmpeg import FFmpegDecoder

    return FFmpegDecoder(
        ffmpeg_bin=str(config.get("ffmpeg_bin") or "ffmpeg"),
        timeout_s=config.get("decode_timeout_s"),
    )
