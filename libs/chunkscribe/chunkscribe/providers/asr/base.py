"""ASR Provider base class."""

from abc import ABC, abstractmethod

from chunkscribe.models.transcript import ASRResult


class ASRProvider(ABC):
    """Abstract base class for ASR providers."""

    provider: str = "asr"

    @abstractmethod
    async def transcribe(
        self,
        payload: bytes,
        *,
        language: str | None = None,
        model: str | None = None,
    ) -> ASRResult:
        """Transcribe one encoded audio payload.

        Args:
            payload: Self-contained audio file bytes (WAV).
            language: Optional language hint.
            model: Optional model override.

        Returns:
            Parsed result with times relative to the start of the payload.

        Raises:
            AuthError, RateLimitError, PayloadTooLargeError, TransientError
        """
        ...

    async def close(self) -> None:  # pragma: no cover
        return None
