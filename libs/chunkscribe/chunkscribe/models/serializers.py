"""Serialization helpers for transcripts handed to export collaborators."""

from __future__ import annotations

from typing import Any

from chunkscribe.models.transcript import Transcript, TranscriptSpan, WordSpan


def serialize_spans(spans: list[TranscriptSpan]) -> list[dict[str, Any]]:
    return [
        {
            "id": int(s.id),
            "start": float(s.start),
            "end": float(s.end),
            "text": str(s.text),
        }
        for s in spans
    ]


def deserialize_spans(items: list[dict[str, Any]]) -> list[TranscriptSpan]:
    out: list[TranscriptSpan] = []
    for i, item in enumerate(items):
        out.append(
            TranscriptSpan(
                id=int(item.get("id", i)),
                start=float(item["start"]),
                end=float(item["end"]),
                text=str(item.get("text") or ""),
            )
        )
    return out


def serialize_words(words: list[WordSpan]) -> list[dict[str, Any]]:
    return [{"word": str(w.text), "start": float(w.start), "end": float(w.end)} for w in words]


def deserialize_words(items: list[dict[str, Any]]) -> list[WordSpan]:
    out: list[WordSpan] = []
    for item in items:
        out.append(
            WordSpan(
                text=str(item.get("word") or item.get("text") or ""),
                start=float(item["start"]),
                end=float(item["end"]),
            )
        )
    return out


def serialize_transcript(transcript: Transcript) -> dict[str, Any]:
    return {
        "text": str(transcript.text),
        "segments": serialize_spans(transcript.segments),
        "words": serialize_words(transcript.words),
        "language": transcript.language,
        "duration": float(transcript.duration),
    }


def deserialize_transcript(data: dict[str, Any]) -> Transcript:
    return Transcript(
        text=str(data.get("text") or ""),
        segments=deserialize_spans(list(data.get("segments") or [])),
        words=deserialize_words(list(data.get("words") or [])),
        language=str(data.get("language") or "ja"),
        duration=float(data.get("duration") or 0.0),
    )
