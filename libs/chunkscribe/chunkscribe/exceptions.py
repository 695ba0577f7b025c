"""chunkscribe exception hierarchy."""

from __future__ import annotations

from chunkscribe.error_codes import ErrorCode


class ChunkscribeError(Exception):
    """Base error for chunkscribe."""


class ConfigurationError(ChunkscribeError):
    """Raised when configuration or inputs are invalid."""

    error_code = ErrorCode.INVALID_CONFIG


class UploadRejectedError(ChunkscribeError):
    """Raised when an upload is refused before the pipeline runs."""

    def __init__(self, message: str, *, error_code: ErrorCode | str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class DecodeError(ChunkscribeError):
    """Raised when audio bytes are corrupt or in an unsupported format."""

    error_code = ErrorCode.DECODE_FAILED


class DecoderUnavailableError(ChunkscribeError):
    """Raised when the decoding facility (ffmpeg) cannot be used."""

    error_code = ErrorCode.DECODER_UNAVAILABLE


class ProviderError(ChunkscribeError):
    """Raised when an external provider call fails."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        error_code: ErrorCode | str | None = None,
    ) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
        self.error_code = error_code


class AuthError(ProviderError):
    """Credentials were rejected. Never retried."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(provider, message, error_code=ErrorCode.ASR_AUTH_FAILED)


class RateLimitError(ProviderError):
    """The service asked us to slow down."""

    def __init__(self, provider: str, message: str, *, retry_after_s: float | None = None) -> None:
        super().__init__(provider, message, error_code=ErrorCode.ASR_RATE_LIMITED)
        self.retry_after_s = retry_after_s


class PayloadTooLargeError(ProviderError):
    """The encoded segment exceeds what the service accepts."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(provider, message, error_code=ErrorCode.ASR_PAYLOAD_TOO_LARGE)


class TransientError(ProviderError):
    """Network or server fault; worth another try."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(provider, message, error_code=ErrorCode.ASR_FAILED)


class StageExecutionError(ChunkscribeError):
    """Raised when a pipeline stage fails."""

    def __init__(
        self,
        stage: str,
        message: str,
        *,
        job_id: str | None = None,
        error_code: ErrorCode | str | None = None,
    ) -> None:
        prefix = f"{stage}"
        if job_id:
            prefix = f"{prefix} (job_id={job_id})"
        super().__init__(f"{prefix}: {message}")
        self.stage = stage
        self.job_id = job_id
        self.message = message
        self.error_code = error_code
