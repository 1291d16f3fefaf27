"""Tests for timestamp, confidence and transcript text formatting."""

import pytest

from transcript_pipeline.asr.interface import NormalizedTranscript, Sentence, Word
from transcript_pipeline.asr.postprocess import (
    format_confidence,
    format_timestamp,
    format_timestamp_precise,
    render_transcript,
)


class TestFormatTimestamp:
    @pytest.mark.parametrize(
        "ms,expected",
        [
            (0, "00:00"),
            (999, "00:00"),
            (1000, "00:01"),
            (65000, "01:05"),
            (599_999, "09:59"),
            (3_600_000, "60:00"),
            (-50, "00:00"),
        ],
    )
    def test_mm_ss(self, ms: int, expected: str) -> None:
        assert format_timestamp(ms) == expected

    def test_precise_keeps_milliseconds(self) -> None:
        assert format_timestamp_precise(65123) == "01:05.123"
        assert format_timestamp_precise(7) == "00:00.007"


class TestFormatConfidence:
    @pytest.mark.parametrize(
        "value,expected",
        [(0.957, "95.7%"), (1.0, "100.0%"), (0.0, "0.0%"), (0.12345, "12.3%")],
    )
    def test_percentage(self, value: float, expected: str) -> None:
        assert format_confidence(value) == expected


class TestRenderTranscript:
    def test_sentences_with_speaker_changes(self) -> None:
        transcript = NormalizedTranscript(
            full_text="ignored",
            sentences=[
                Sentence("A", "Hello.", 0, 900, 0.9),
                Sentence("A", "Still me.", 1000, 1900, 0.9),
                Sentence("B", "Hi.", 65000, 65500, 0.8),
            ],
        )

        assert render_transcript(transcript) == (
            "[00:00] Speaker A: Hello.\n"
            "[00:01] Speaker A: Still me.\n"
            "\n"
            "[01:05] Speaker B: Hi."
        )

    def test_sentence_without_speaker_has_no_label(self) -> None:
        transcript = NormalizedTranscript(sentences=[Sentence("", "Solo.", 0, 10, 1.0)])
        assert render_transcript(transcript) == "[00:00] Solo."

    def test_words_grouped_at_marker_boundaries(self) -> None:
        transcript = NormalizedTranscript(
            words=[
                Word("", "one", 0, 100, 0.9),
                Word("", "two", 5000, 5100, 0.9),
                Word("", "three", 16000, 16100, 0.9),
                Word("", "four", 47000, 47100, 0.9),
            ]
        )

        assert render_transcript(transcript) == (
            "[00:00] one two\n[00:15] three\n[00:45] four"
        )

    def test_text_only(self) -> None:
        assert render_transcript(NormalizedTranscript(full_text="plain")) == "plain"

    def test_empty(self) -> None:
        assert render_transcript(NormalizedTranscript()) == ""
