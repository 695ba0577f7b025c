"""Run external tools (ffmpeg) without blocking the event loop."""

from __future__ import annotations

import asyncio
import subprocess
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def stderr_tail(self, limit: int = 2000) -> str:
        """Last `limit` characters of stderr, decoded leniently."""
        text = self.stderr.decode("utf-8", errors="replace").strip()
        return text[-limit:] if limit > 0 else text


async def run_subprocess(
    args: Sequence[str],
    *,
    input_bytes: bytes | None = None,
    timeout_s: float | None = None,
) -> RunResult:
    """Run `args` in a worker thread and capture its output.

    A blocking `subprocess.run` in a thread sidesteps asyncio child watchers.
    `FileNotFoundError`/`PermissionError` (missing binary) and
    `subprocess.TimeoutExpired` propagate to the caller.
    """
    completed = await asyncio.to_thread(
        subprocess.run,
        list(args),
        input=input_bytes,
        capture_output=True,
        check=False,
        timeout=timeout_s,
    )
    return RunResult(
        returncode=int(completed.returncode),
        stdout=completed.stdout or b"",
        stderr=completed.stderr or b"",
    )
