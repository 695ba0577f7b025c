"""Reassemble per-segment fragments into one recording-absolute transcript."""

from __future__ import annotations

from collections.abc import Iterable

from chunkscribe.models.transcript import Transcript, TranscriptFragment, TranscriptSpan, WordSpan

DEFAULT_LANGUAGE = "ja"


def merge_fragments(
    fragments: Iterable[TranscriptFragment],
    *,
    default_language: str = DEFAULT_LANGUAGE,
) -> Transcript:
    """Merge fragments in segment order, whatever order they completed in.

    Every span is shifted by its segment's start time. Span ids are
    renumbered across the whole transcript. Duration is the latest segment end,
    since segments overlap rather than concatenate.
    """
    ordered = sorted(fragments, key=lambda f: int(f.segment_index))
    if not ordered:
        return Transcript(text="", segments=[], words=[], language=default_language, duration=0.0)

    texts: list[str] = []
    spans: list[TranscriptSpan] = []
    words: list[WordSpan] = []
    duration = 0.0

    for fragment in ordered:
        offset = float(fragment.segment_start)
        text = str(fragment.text or "").strip()
        if text:
            texts.append(text)

        for span in fragment.segments:
            spans.append(
                TranscriptSpan(
                    id=len(spans),
                    start=float(span.start) + offset,
                    end=float(span.end) + offset,
                    text=span.text,
                )
            )
        for word in fragment.words:
            words.append(
                WordSpan(
                    text=word.text,
                    start=float(word.start) + offset,
                    end=float(word.end) + offset,
                )
            )
        duration = max(duration, float(fragment.segment_end))

    return Transcript(
        text=" ".join(texts),
        segments=spans,
        words=words,
        language=ordered[0].language or default_language,
        duration=duration,
    )
