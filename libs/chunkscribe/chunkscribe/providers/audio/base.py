"""Audio decoder abstractions."""

from __future__ import annotations

from abc import ABC, abstractmethod

from chunkscribe.models.waveform import Waveform


class AudioDecoder(ABC):
    @abstractmethod
    async def decode(self, data: bytes, filename: str | None = None) -> Waveform:
        """Decode raw file bytes into a Waveform.

        Raises:
            DecodeError: the bytes are corrupt or in an unsupported format.
            DecoderUnavailableError: the decoding facility cannot be used.
        """
        raise NotImplementedError

    async def close(self) -> None:  # pragma: no cover
        return None
