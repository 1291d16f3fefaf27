"""Transcript post-processing: timestamp, confidence and text formatting.

Formats millisecond offsets as MM:SS (or MM:SS.mmm), confidences as
percentages, and renders a NormalizedTranscript into readable text with
[MM:SS] markers and speaker labels at turn boundaries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from transcript_pipeline.asr.interface import NormalizedTranscript

MARKER_INTERVAL_SECONDS = 15


def format_timestamp(ms: int | float) -> str:
    """Format a millisecond offset as MM:SS (65000 -> "01:05")."""
    total_seconds = max(int(ms), 0) // 1000
    minutes = total_seconds // 60
    secs = total_seconds % 60
    return f"{minutes:02d}:{secs:02d}"


def format_timestamp_precise(ms: int | float) -> str:
    """Format a millisecond offset as MM:SS.mmm (65123 -> "01:05.123")."""
    total_ms = max(int(ms), 0)
    millis = total_ms % 1000
    return f"{format_timestamp(total_ms)}.{millis:03d}"


def format_confidence(value: float) -> str:
    """Format a 0..1 confidence as a one-decimal percentage (0.957 -> "95.7%")."""
    return f"{value * 100:.1f}%"


def render_transcript(transcript: NormalizedTranscript) -> str:
    """Convert a NormalizedTranscript into readable text.

    Sentences are rendered one per line, prefixed with an [MM:SS] marker and
    the speaker label, with an empty line between speaker changes. Without
    sentences, words are joined into lines with a marker at each 15-second
    boundary. Without words, the full text is returned as-is.

    Returns:
        Formatted transcript text. Empty string for empty transcripts.
    """
    if transcript.sentences:
        lines: list[str] = []
        prev_speaker: str | None = None
        for sentence in transcript.sentences:
            if prev_speaker is not None and sentence.speaker != prev_speaker:
                lines.append("")
            prev_speaker = sentence.speaker
            label = f"Speaker {sentence.speaker}: " if sentence.speaker else ""
            lines.append(f"[{sentence.start}] {label}{sentence.text}")
        return "\n".join(lines)

    if transcript.words:
        lines = []
        next_marker_ms = 0
        interval_ms = MARKER_INTERVAL_SECONDS * 1000
        for word in transcript.words:
            if word.start_ms >= next_marker_ms or not lines:
                # Snap to the most recent boundary at or before this word
                boundary = (max(word.start_ms, 0) // interval_ms) * interval_ms
                lines.append(f"[{format_timestamp(boundary)}] {word.text}")
                next_marker_ms = boundary + interval_ms
            else:
                lines[-1] += f" {word.text}"
        return "\n".join(lines)

    return transcript.full_text
