"""Bounded admission with a global rate floor for outbound ASR calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TypeVar

from chunkscribe.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AdmissionWithdrawn(Exception):
    """The caller gave up its place in the queue before a slot was granted."""


@dataclass(frozen=True)
class ConcurrencyState:
    active: int
    max: int


class AdmissionGate:
    """Admit at most `width` tasks at once, spaced at least `min_interval_s` apart.

    Callers are admitted in arrival order. The spacing is measured between
    admission times of any two tasks, not per slot. All admission bookkeeping
    happens while holding a single lock, so check-and-admit is atomic.
    """

    def __init__(self, *, width: int, min_interval_s: float = 0.0) -> None:
        self._width = max(1, int(width))
        self._min_interval_s = max(0.0, float(min_interval_s))
        self._admission = asyncio.Lock()
        self._slot_freed = asyncio.Event()
        self._active = 0
        self._admitted_total = 0
        self._last_admitted_at: float | None = None

    @classmethod
    def from_settings(cls, settings: Settings, *, width: int | None = None) -> "AdmissionGate":
        return cls(
            width=int(width if width is not None else settings.concurrency_asr),
            min_interval_s=float(settings.concurrency.min_interval_s),
        )

    @property
    def width(self) -> int:
        return self._width

    @property
    def min_interval_s(self) -> float:
        return self._min_interval_s

    @property
    def admitted_total(self) -> int:
        return self._admitted_total

    def snapshot(self) -> ConcurrencyState:
        return ConcurrencyState(active=self._active, max=self._width)

    @staticmethod
    def _now() -> float:
        return asyncio.get_running_loop().time()

    async def _admit(self, should_skip: Callable[[], bool] | None = None) -> bool:
        """Take a slot; False when `should_skip` turned true while queued."""
        withdrawn = should_skip or (lambda: False)
        async with self._admission:
            if withdrawn():
                return False
            while self._active >= self._width:
                self._slot_freed.clear()
                await self._slot_freed.wait()
                if withdrawn():
                    return False

            if self._last_admitted_at is not None and self._min_interval_s > 0:
                while True:
                    wait_s = self._last_admitted_at + self._min_interval_s - self._now()
                    if wait_s <= 0:
                        break
                    logger.debug("rate floor: waiting %.3fs before next admission", wait_s)
                    await asyncio.sleep(wait_s)
                    if withdrawn():
                        return False

            self._active += 1
            self._admitted_total += 1
            self._last_admitted_at = self._now()
            return True

    def _release(self) -> None:
        self._active = max(0, self._active - 1)
        self._slot_freed.set()

    @asynccontextmanager
    async def acquire(self, should_skip: Callable[[], bool] | None = None) -> AsyncIterator[ConcurrencyState]:
        """Hold a slot for the duration of the block.

        Raises `AdmissionWithdrawn` when `should_skip` returns true before the
        slot is granted; the caller then holds no slot and the spacing clock
        is left untouched.
        """
        if not await self._admit(should_skip):
            raise AdmissionWithdrawn()
        try:
            yield self.snapshot()
        finally:
            self._release()

    async def run(
        self,
        task: Callable[[], Awaitable[T]],
        *,
        should_skip: Callable[[], bool] | None = None,
    ) -> T:
        """Wait for admission, run `task`, and free the slot however it ends."""
        async with self.acquire(should_skip):
            return await task()
