"""Configuration management using pydantic-settings."""

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chunkscribe.exceptions import ConfigurationError

_ENV_FILES = (".env", "../.env", "../../.env")

_REPO_ROOT = Path(__file__).resolve().parents[3]


def _resolve_repo_path(value: str) -> str:
    raw = str(value or "").strip()
    if not raw:
        return raw
    p = Path(raw)
    if p.is_absolute():
        return str(p)
    return str((_REPO_ROOT / p).resolve())


class SegmentationConfig(BaseSettings):
    """How a decoded recording is cut into overlapping windows."""

    model_config = SettingsConfigDict(
        env_prefix="SEGMENT_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    duration_s: float = Field(default=60.0, gt=0)
    overlap_s: float = Field(default=1.0, ge=0)
    # Remainders strictly shorter than this are dropped (exactly 1.0s is kept).
    min_duration_s: float = Field(default=1.0, gt=0)
    bit_depth: int = 16

    @model_validator(mode="after")
    def _validate_window(self) -> "SegmentationConfig":
        if float(self.overlap_s) >= float(self.duration_s):
            raise ConfigurationError("SEGMENT_OVERLAP_S must be < SEGMENT_DURATION_S")
        if int(self.bit_depth) not in (8, 16, 24, 32):
            raise ConfigurationError("SEGMENT_BIT_DEPTH must be one of 8/16/24/32")
        return self


class ASRConfig(BaseSettings):
    """ASR Provider configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ASR_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: str = "openai_whisper"
    base_url: str = "https://api.groq.com/openai/v1"
    api_key: str = ""
    model: str = "whisper-large-v3-turbo"
    language: str | None = None
    timeout: float = Field(default=120.0, gt=0)

    max_attempts: int = Field(default=4, ge=1, description="Calls per request, first try included.")
    base_delay_s: float = Field(default=1.0, ge=0)
    max_jitter_s: float = Field(default=1.0, ge=0)
    rate_limit_margin_s: float = Field(default=0.5, ge=0)
    max_payload_bytes: int = Field(default=25 * 1024 * 1024, ge=1)


class ConcurrencyConfig(BaseSettings):
    """Global limits on outbound ASR calls."""

    model_config = SettingsConfigDict(
        env_prefix="CONCURRENCY_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    asr: int = Field(default=3, ge=1)
    # 20 requests/minute on the shared key.
    min_interval_s: float = Field(default=3.0, ge=0)


class PipelineConfig(BaseSettings):
    """Orchestration knobs."""

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_segment_retries: int = Field(default=2, ge=0, description="Retry waves after the first pass.")
    upload_max_bytes: int = Field(default=100 * 1024 * 1024, ge=1)
    auto_tune: bool = True
    default_language: str = "ja"


class AudioConfig(BaseSettings):
    """Audio decoding configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUDIO_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    ffmpeg_bin: str = "ffmpeg"
    decode_timeout_s: float | None = Field(default=600.0, gt=0)


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"
    console: bool = True
    file: str | None = None
    max_bytes: int = Field(default=10 * 1024 * 1024, ge=0)
    backup_count: int = Field(default=5, ge=0)


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILES, env_file_encoding="utf-8", extra="ignore"
    )

    log_dir: str = "./logs"

    segment: SegmentationConfig = SegmentationConfig()
    asr: ASRConfig = ASRConfig()
    concurrency: ConcurrencyConfig = ConcurrencyConfig()
    pipeline: PipelineConfig = PipelineConfig()
    audio: AudioConfig = AudioConfig()

    # Logging
    logging: LoggingSettings = LoggingSettings()

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        self.log_dir = _resolve_repo_path(self.log_dir)
        return self

    @property
    def concurrency_asr(self) -> int:
        return int(self.concurrency.asr)
