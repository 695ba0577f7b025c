"""Shared retry utilities for ASR providers."""

from __future__ import annotations

import logging
from collections.abc import Callable

from tenacity import RetryCallState, wait_exponential, wait_random

from chunkscribe.exceptions import RateLimitError


def backoff_wait(
    *,
    base_delay_s: float = 1.0,
    max_jitter_s: float = 1.0,
    rate_limit_margin_s: float = 0.5,
) -> Callable[[RetryCallState], float]:
    """Exponential backoff plus jitter, stretched to honour server wait hints.

    Attempt n waits ``base_delay_s * 2**(n-1) + uniform(0, max_jitter_s)``. A
    `RateLimitError` carrying `retry_after_s` waits at least that long plus
    `rate_limit_margin_s`.
    """
    backoff = wait_exponential(multiplier=base_delay_s, exp_base=2, min=0) + wait_random(0, max_jitter_s)

    def _wait(state: RetryCallState) -> float:
        delay = float(backoff(state))
        exc = state.outcome.exception() if state.outcome else None
        if isinstance(exc, RateLimitError) and exc.retry_after_s is not None:
            delay = max(delay, float(exc.retry_after_s) + float(rate_limit_margin_s))
        return delay

    return _wait


def log_retry(logger: logging.Logger, provider: str = "asr") -> Callable[[RetryCallState], None]:
    def _log(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        wait_s = state.next_action.sleep if state.next_action else None
        logger.warning(
            "asr retrying (provider=%s, attempt=%s, wait_s=%s, error=%s)",
            provider,
            state.attempt_number,
            wait_s,
            exc,
        )

    return _log
