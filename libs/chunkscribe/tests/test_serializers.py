from __future__ import annotations

import json

from chunkscribe.models.serializers import deserialize_transcript, serialize_transcript
from chunkscribe.models.transcript import Transcript, TranscriptSpan, WordSpan


def test_transcript_serializes_to_verbose_json_shape() -> None:
    transcript = Transcript(
        text="こんにちは 世界",
        segments=[TranscriptSpan(id=0, start=0.0, end=1.2, text="こんにちは")],
        words=[WordSpan(text="世界", start=60.5, end=61.0)],
        language="ja",
        duration=119.0,
    )

    data = serialize_transcript(transcript)

    assert set(data) == {"text", "segments", "words", "language", "duration"}
    assert data["words"] == [{"word": "世界", "start": 60.5, "end": 61.0}]
    assert deserialize_transcript(json.loads(json.dumps(data, ensure_ascii=False))) == transcript


def test_deserialize_fills_missing_fields() -> None:
    transcript = deserialize_transcript(
        {
            "segments": [{"start": 1, "end": 2, "text": "a"}, {"id": 7, "start": 3, "end": 4}],
            "words": [{"text": "a", "start": 1, "end": 1.5}],
        }
    )

    assert transcript.text == ""
    assert [s.id for s in transcript.segments] == [0, 7]
    assert transcript.segments[1].text == ""
    assert transcript.words[0].text == "a"
    assert transcript.language == "ja"
    assert transcript.duration == 0.0
