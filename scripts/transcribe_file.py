from __future__ import annotations

import argparse
import asyncio
import json
import mimetypes
import sys
import uuid
from pathlib import Path

from chunkscribe.config import Settings
from chunkscribe.exceptions import ChunkscribeError
from chunkscribe.models.serializers import serialize_transcript
from chunkscribe.pipeline import PipelineOrchestrator
from chunkscribe.services.uploads import validate_upload
from chunkscribe.utils.logging_setup import setup_logging


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Transcribe a long local audio file.")
    parser.add_argument("--audio", required=True, help="Path to local audio file")
    parser.add_argument("--job-id", default=None, help="Job id (defaults to random uuid)")
    parser.add_argument("--language", default=None, help="Language hint, e.g. ja/en (omit or 'auto' to detect)")
    parser.add_argument("--model", default=None, help="Override ASR model name")
    parser.add_argument("--segment-duration", type=float, default=None, help="Segment length in seconds")
    parser.add_argument("--overlap", type=float, default=None, help="Overlap between segments in seconds")
    parser.add_argument("--concurrency", type=int, default=None, help="Max ASR calls in flight")
    parser.add_argument(
        "--bit-depth",
        type=int,
        choices=[8, 16, 24, 32],
        default=None,
        help="PCM bit depth of uploaded segments",
    )
    parser.add_argument("--output", default=None, help="Write transcript JSON here (default: stdout)")
    return parser.parse_args(argv)


async def _run(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    audio_path = Path(args.audio)
    if not audio_path.exists():
        raise SystemExit(f"Audio not found: {audio_path}")

    settings = Settings()
    if args.concurrency is not None:
        settings.concurrency.asr = max(1, int(args.concurrency))
        settings.pipeline.auto_tune = False
    setup_logging(settings)

    content_type, _ = mimetypes.guess_type(audio_path.name)
    try:
        validate_upload(
            audio_path.name,
            audio_path.stat().st_size,
            content_type,
            max_bytes=settings.pipeline.upload_max_bytes,
        )
    except ChunkscribeError as exc:
        print(f"rejected: {exc}", file=sys.stderr)
        return 2

    def _on_progress(done: int, total: int) -> None:
        print(f"\rsegments {done}/{total}", end="", file=sys.stderr, flush=True)

    orchestrator = PipelineOrchestrator(settings, on_progress=_on_progress)
    try:
        transcript = await orchestrator.run(
            audio_path.read_bytes(),
            filename=audio_path.name,
            language=args.language,
            model=args.model,
            job_id=str(args.job_id or uuid.uuid4()),
            segment_duration_s=args.segment_duration,
            overlap_s=args.overlap,
            bit_depth=args.bit_depth,
        )
    except ChunkscribeError:
        status = orchestrator.status
        print(file=sys.stderr)
        print(f"failed: {status.error_code} {status.error_message}", file=sys.stderr)
        return 1
    print(file=sys.stderr)

    status = orchestrator.status
    print(f"job_id={status.job_id} stage={status.stage.value} message={status.message}", file=sys.stderr)
    if transcript is None:
        return 1

    payload = json.dumps(serialize_transcript(transcript), ensure_ascii=False, indent=2)
    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
    else:
        print(payload)
    return 0


def main() -> None:
    raise SystemExit(asyncio.run(_run()))


if __name__ == "__main__":
    main()
