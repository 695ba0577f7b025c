"""OpenAI-compatible Whisper transcription provider (Groq, OpenAI, vLLM)."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from chunkscribe.exceptions import (
    AuthError,
    PayloadTooLargeError,
    RateLimitError,
    TransientError,
)
from chunkscribe.models.transcript import ASRResult, TranscriptSpan, WordSpan
from chunkscribe.providers.asr._retry import backoff_wait, log_retry
from chunkscribe.providers.asr.base import ASRProvider

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"

_RETRY_IN_RE = re.compile(r"try again in (?:(\d+)m(?!s))?([\d.]+)(ms|s)", re.IGNORECASE)


def _format_http_error(response: httpx.Response) -> str:
    status = response.status_code
    reason = response.reason_phrase
    detail = ""
    try:
        detail = response.text.strip()
    except Exception:
        detail = repr(response.content)
    if detail:
        if len(detail) > 2000:
            detail = detail[:2000] + "…"
        return f"HTTP {status} {reason}: {detail}"
    return f"HTTP {status} {reason}"


def parse_retry_after(message: str, headers: httpx.Headers | None = None) -> float | None:
    """Extract a server-suggested wait (seconds) from a 429 body or headers."""
    match = _RETRY_IN_RE.search(message or "")
    if match:
        minutes = float(match.group(1) or 0)
        amount = float(match.group(2))
        if match.group(3).lower() == "ms":
            amount /= 1000.0
        return minutes * 60.0 + amount
    if headers is not None:
        raw = str(headers.get("retry-after") or "").strip()
        if raw:
            try:
                return max(0.0, float(raw))
            except ValueError:
                return None
    return None


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def parse_transcription(body: dict[str, Any]) -> ASRResult:
    """Convert a verbose_json body into an ASRResult."""
    segments = [
        TranscriptSpan(
            id=int(item["id"]) if isinstance(item.get("id"), int) else i,
            start=_as_float(item.get("start")),
            end=_as_float(item.get("end")),
            text=str(item.get("text") or ""),
        )
        for i, item in enumerate(body.get("segments") or [])
        if isinstance(item, dict)
    ]
    words = [
        WordSpan(
            text=str(item.get("word") or item.get("text") or ""),
            start=_as_float(item.get("start")),
            end=_as_float(item.get("end")),
        )
        for item in body.get("words") or []
        if isinstance(item, dict)
    ]
    language = body.get("language")
    return ASRResult(
        text=str(body.get("text") or ""),
        segments=segments,
        words=words,
        language=str(language) if language else None,
        duration=_as_float(body.get("duration")),
    )


class OpenAIWhisperProvider(ASRProvider):
    """`/audio/transcriptions` client with verbose JSON and word timestamps.

    Rate limits and transient faults are retried with exponential backoff;
    auth failures and oversized payloads are raised immediately.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        model: str = "whisper-large-v3-turbo",
        timeout: float = 120.0,
        max_connections: int = 10,
        max_attempts: int = 4,
        base_delay_s: float = 1.0,
        max_jitter_s: float = 1.0,
        rate_limit_margin_s: float = 0.5,
        max_payload_bytes: int = 25 * 1024 * 1024,
        provider: str = "openai_whisper",
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.base_url = (str(base_url or "").strip() or DEFAULT_BASE_URL).rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_connections = max(1, int(max_connections))
        self.max_attempts = max(1, int(max_attempts))
        self.max_payload_bytes = int(max_payload_bytes)
        self._wait = backoff_wait(
            base_delay_s=base_delay_s,
            max_jitter_s=max_jitter_s,
            rate_limit_margin_s=rate_limit_margin_s,
        )
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.AsyncClient | None = None

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create connection-pooled HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(
                    max_connections=self.max_connections,
                    max_keepalive_connections=max(1, self.max_connections // 2),
                ),
                transport=self._transport,
            )
        return self._client

    async def transcribe(
        self,
        payload: bytes,
        *,
        language: str | None = None,
        model: str | None = None,
    ) -> ASRResult:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type((RateLimitError, TransientError)),
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            before_sleep=log_retry(logger, self.provider),
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(self._transcribe_once, payload, language=language, model=model)

    async def _transcribe_once(
        self,
        payload: bytes,
        *,
        language: str | None = None,
        model: str | None = None,
    ) -> ASRResult:
        if len(payload) > self.max_payload_bytes:
            raise PayloadTooLargeError(
                self.provider,
                f"payload is {len(payload)} bytes (limit {self.max_payload_bytes})",
            )

        data: dict[str, Any] = {
            "model": model or self.model,
            "response_format": "verbose_json",
            "timestamp_granularities[]": ["segment", "word"],
        }
        lang = str(language or "").strip()
        if lang and lang.lower() != "auto":
            data["language"] = lang
        files = {"file": ("audio.wav", payload, "audio/wav")}

        client = await self._get_client()
        try:
            response = await client.post(
                f"{self.base_url}/audio/transcriptions",
                headers=self._headers(),
                files=files,
                data=data,
            )
        except httpx.HTTPError as exc:
            raise TransientError(self.provider, f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            self._raise_for_status(response)

        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise TransientError(self.provider, f"invalid JSON response: {exc}") from exc
        if not isinstance(body, dict):
            raise TransientError(self.provider, f"unexpected response type: {type(body).__name__}")
        return parse_transcription(body)

    def _raise_for_status(self, response: httpx.Response) -> None:
        message = _format_http_error(response)
        status = response.status_code
        if status == 401:
            raise AuthError(self.provider, message)
        if status == 429:
            raise RateLimitError(
                self.provider,
                message,
                retry_after_s=parse_retry_after(message, response.headers),
            )
        if status == 413:
            raise PayloadTooLargeError(self.provider, message)
        raise TransientError(self.provider, message)

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "OpenAIWhisperProvider":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()
