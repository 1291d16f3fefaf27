"""Schema-tolerant mapping of terminal job payloads.

decode_payload() turns the raw JSON into exactly one of three shapes, tried
in priority order:

    UtterancePayload  - speaker-attributed utterances, optionally with
                        nested per-word arrays
    WordListPayload   - flat top-level word list, no diarization
    TextOnlyPayload   - full text only

map_transcript() converts the decoded shape into a NormalizedTranscript.
Missing or wrongly typed fields fall back to "" / 0 / 0.0 instead of
failing the whole mapping; entries that are not JSON objects are skipped.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from transcript_pipeline.asr.interface import NormalizedTranscript, Sentence, Word

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawWord:
    text: str
    start_ms: int
    end_ms: int
    confidence: float
    speaker: str | None


@dataclass(frozen=True)
class RawUtterance:
    speaker: str
    text: str
    start_ms: int
    end_ms: int
    confidence: float
    words: tuple[RawWord, ...]


@dataclass(frozen=True)
class UtterancePayload:
    text: str | None
    utterances: tuple[RawUtterance, ...]
    words: tuple[RawWord, ...]
    shape = "utterances"


@dataclass(frozen=True)
class WordListPayload:
    text: str | None
    words: tuple[RawWord, ...]
    shape = "words"


@dataclass(frozen=True)
class TextOnlyPayload:
    text: str | None
    shape = "text"


TranscriptPayload = Union[UtterancePayload, WordListPayload, TextOnlyPayload]


def _as_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _as_optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _as_ms(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float) and math.isfinite(value):
        return max(int(round(value)), 0)
    if isinstance(value, str):
        try:
            return _as_ms(float(value))
        except ValueError:
            return 0
    return 0


def _as_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return min(max(float(value), 0.0), 1.0)


def _objects(value: Any) -> list[Mapping[str, Any]]:
    """Return the JSON-object entries of `value` if it is an array."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


def _decode_word(raw: Mapping[str, Any]) -> RawWord:
    speaker = raw.get("speaker")
    return RawWord(
        text=_as_str(raw.get("text")),
        start_ms=_as_ms(raw.get("start")),
        end_ms=_as_ms(raw.get("end")),
        confidence=_as_confidence(raw.get("confidence")),
        speaker=_as_str(speaker) if speaker not in (None, "") else None,
    )


def _decode_utterance(raw: Mapping[str, Any]) -> RawUtterance:
    return RawUtterance(
        speaker=_as_str(raw.get("speaker")),
        text=_as_str(raw.get("text")),
        start_ms=_as_ms(raw.get("start")),
        end_ms=_as_ms(raw.get("end")),
        confidence=_as_confidence(raw.get("confidence")),
        words=tuple(_decode_word(w) for w in _objects(raw.get("words"))),
    )


def decode_payload(payload: Mapping[str, Any]) -> TranscriptPayload:
    """Decode a terminal job payload into one of the three shapes."""
    if not isinstance(payload, Mapping):
        return TextOnlyPayload(text=None)

    text = _as_optional_str(payload.get("text"))
    utterances = _objects(payload.get("utterances"))
    words = _objects(payload.get("words"))

    if utterances:
        return UtterancePayload(
            text=text,
            utterances=tuple(_decode_utterance(u) for u in utterances),
            words=tuple(_decode_word(w) for w in words),
        )
    if words:
        return WordListPayload(
            text=text, words=tuple(_decode_word(w) for w in words)
        )
    return TextOnlyPayload(text=text)


def _to_word(raw: RawWord, default_speaker: str = "") -> Word:
    return Word(
        speaker=raw.speaker if raw.speaker is not None else default_speaker,
        text=raw.text,
        start_ms=raw.start_ms,
        end_ms=raw.end_ms,
        confidence=raw.confidence,
    )


def _join(parts: list[str]) -> str:
    return " ".join(p.strip() for p in parts if p.strip())


def build_transcript(decoded: TranscriptPayload) -> NormalizedTranscript:
    """Convert a decoded payload into a NormalizedTranscript."""
    if isinstance(decoded, UtterancePayload):
        sentences = [
            Sentence(
                speaker=u.speaker,
                text=u.text,
                start_ms=u.start_ms,
                end_ms=u.end_ms,
                confidence=u.confidence,
            )
            for u in decoded.utterances
        ]
        words = [_to_word(w, u.speaker) for u in decoded.utterances for w in u.words]
        if not words:
            # Utterances without nested words: use the top-level word list
            words = [_to_word(w) for w in decoded.words]
        full_text = decoded.text
        if full_text is None:
            full_text = _join([s.text for s in sentences])
        return NormalizedTranscript(full_text=full_text, sentences=sentences, words=words)

    if isinstance(decoded, WordListPayload):
        words = [_to_word(w) for w in decoded.words]
        full_text = decoded.text
        if full_text is None:
            full_text = _join([w.text for w in words])
        return NormalizedTranscript(full_text=full_text, sentences=[], words=words)

    return NormalizedTranscript(full_text=decoded.text or "", sentences=[], words=[])


def map_transcript(payload: Mapping[str, Any]) -> NormalizedTranscript:
    """Map a terminal job payload to a NormalizedTranscript.

    Deterministic: identical payloads always produce equal transcripts.
    """
    decoded = decode_payload(payload)
    transcript = build_transcript(decoded)
    logger.debug(
        "Mapped %s payload: %d sentence(s), %d word(s)",
        decoded.shape,
        len(transcript.sentences),
        len(transcript.words),
        extra={"stage": "map"},
    )
    return transcript
