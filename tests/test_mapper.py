"""Tests for terminal payload decoding and transcript mapping."""

import pytest

from transcript_pipeline.asr.interface import NormalizedTranscript, Sentence, Word
from transcript_pipeline.asr.mapper import (
    TextOnlyPayload,
    UtterancePayload,
    WordListPayload,
    decode_payload,
    map_transcript,
)

UTTERANCE_PAYLOAD = {
    "id": "job-1",
    "status": "completed",
    "text": "Hello there. General Kenobi.",
    "utterances": [
        {
            "speaker": "A",
            "text": "Hello there.",
            "start": 0,
            "end": 1200,
            "confidence": 0.957,
            "words": [
                {"text": "Hello", "start": 0, "end": 500, "confidence": 0.99},
                {
                    "text": "there.",
                    "start": 600,
                    "end": 1200,
                    "confidence": 0.92,
                    "speaker": "A",
                },
            ],
        },
        {
            "speaker": "B",
            "text": "General Kenobi.",
            "start": 65000,
            "end": 66500,
            "confidence": 0.88,
            "words": [
                {"text": "General", "start": 65000, "end": 65600, "confidence": 0.9},
                {"text": "Kenobi.", "start": 65700, "end": 66500, "confidence": 0.86},
            ],
        },
    ],
}

WORD_PAYLOAD = {
    "status": "completed",
    "text": "one two",
    "words": [
        {"text": "one", "start": 0, "end": 300, "confidence": 0.9},
        {"text": "two", "start": 400, "end": 700, "confidence": 0.8},
    ],
}


class TestDecodePayload:
    """Tests for shape selection."""

    def test_utterances_take_priority(self) -> None:
        payload = {**UTTERANCE_PAYLOAD, "words": WORD_PAYLOAD["words"]}
        decoded = decode_payload(payload)
        assert isinstance(decoded, UtterancePayload)
        assert decoded.shape == "utterances"
        assert len(decoded.utterances) == 2
        assert len(decoded.words) == 2

    def test_word_list_without_utterances(self) -> None:
        decoded = decode_payload(WORD_PAYLOAD)
        assert isinstance(decoded, WordListPayload)
        assert decoded.shape == "words"

    @pytest.mark.parametrize(
        "payload",
        [
            {"text": "just text"},
            {"text": "just text", "utterances": [], "words": []},
            {"text": "just text", "utterances": None, "words": "nope"},
            {"text": "just text", "utterances": [1, "x"], "words": [None]},
        ],
    )
    def test_text_only_fallback(self, payload: dict) -> None:
        decoded = decode_payload(payload)
        assert isinstance(decoded, TextOnlyPayload)
        assert decoded.text == "just text"
        assert decoded.shape == "text"


class TestMapTranscript:
    """Tests for NormalizedTranscript construction."""

    def test_utterances_map_to_sentences_and_words(self) -> None:
        transcript = map_transcript(UTTERANCE_PAYLOAD)

        assert transcript.full_text == "Hello there. General Kenobi."
        assert transcript.sentences[0] == Sentence(
            speaker="A", text="Hello there.", start_ms=0, end_ms=1200, confidence=0.957
        )
        assert [s.speaker for s in transcript.sentences] == ["A", "B"]
        assert [w.text for w in transcript.words] == [
            "Hello",
            "there.",
            "General",
            "Kenobi.",
        ]

    def test_nested_words_inherit_utterance_speaker(self) -> None:
        transcript = map_transcript(UTTERANCE_PAYLOAD)
        assert [w.speaker for w in transcript.words] == ["A", "A", "B", "B"]

    def test_sentence_formatting(self) -> None:
        sentence = map_transcript(UTTERANCE_PAYLOAD).sentences[1]
        assert sentence.start == "01:05"
        assert sentence.end == "01:06"
        assert sentence.confidence_percent == "88.0%"
        assert map_transcript(UTTERANCE_PAYLOAD).sentences[0].confidence_percent == (
            "95.7%"
        )

    def test_utterances_without_nested_words_use_top_level_words(self) -> None:
        payload = {
            "text": "hi",
            "utterances": [{"speaker": "A", "text": "hi", "start": 0, "end": 400}],
            "words": [{"text": "hi", "start": 0, "end": 400, "confidence": 0.7}],
        }

        transcript = map_transcript(payload)

        assert transcript.words == [
            Word(speaker="", text="hi", start_ms=0, end_ms=400, confidence=0.7)
        ]

    def test_word_list_has_no_sentences(self) -> None:
        transcript = map_transcript(WORD_PAYLOAD)

        assert transcript.sentences == []
        assert transcript.full_text == "one two"
        assert transcript.words[1] == Word(
            speaker="", text="two", start_ms=400, end_ms=700, confidence=0.8
        )

    def test_text_only(self) -> None:
        transcript = map_transcript({"status": "completed", "text": "hello"})
        assert transcript == NormalizedTranscript(full_text="hello")

    def test_missing_text_is_rebuilt_from_words(self) -> None:
        payload = {"words": WORD_PAYLOAD["words"]}
        assert map_transcript(payload).full_text == "one two"

    def test_missing_text_is_rebuilt_from_sentences(self) -> None:
        payload = {k: v for k, v in UTTERANCE_PAYLOAD.items() if k != "text"}
        assert map_transcript(payload).full_text == "Hello there. General Kenobi."

    def test_empty_payload_maps_to_empty_transcript(self) -> None:
        assert map_transcript({}) == NormalizedTranscript()

    def test_missing_and_wrongly_typed_fields_use_defaults(self) -> None:
        payload = {
            "utterances": [
                {
                    "speaker": None,
                    "text": 42,
                    "start": "1500",
                    "end": "soon",
                    "confidence": "high",
                    "words": [{"start": -10, "confidence": 1.7}, "garbage"],
                }
            ]
        }

        transcript = map_transcript(payload)

        assert transcript.sentences == [
            Sentence(speaker="", text="42", start_ms=1500, end_ms=0, confidence=0.0)
        ]
        assert transcript.words == [
            Word(speaker="", text="", start_ms=0, end_ms=0, confidence=1.0)
        ]

    def test_non_object_entries_are_skipped(self) -> None:
        payload = {
            "words": [
                "noise",
                {"text": "kept", "start": 0, "end": 10, "confidence": 0.5},
                None,
                7,
            ]
        }

        transcript = map_transcript(payload)

        assert [w.text for w in transcript.words] == ["kept"]

    def test_mapping_is_deterministic(self) -> None:
        assert map_transcript(UTTERANCE_PAYLOAD) == map_transcript(UTTERANCE_PAYLOAD)

    def test_to_dict_shape(self) -> None:
        data = map_transcript(UTTERANCE_PAYLOAD).to_dict()

        assert set(data) == {"full_text", "sentences", "words"}
        assert data["sentences"][1]["start"] == "01:05"
        assert data["sentences"][1]["start_ms"] == 65000
        assert data["sentences"][0]["confidence"] == "95.7%"
        assert data["words"][0] == {
            "speaker": "A",
            "text": "Hello",
            "start": 0,
            "end": 500,
            "confidence": 0.99,
        }
