"""Remote transcription client: upload, job creation, polling and mapping."""

from transcript_pipeline.asr.interface import (
    Job,
    JobStatus,
    NormalizedTranscript,
    Sentence,
    TranscriptionDiagnostics,
    TranscriptionEngine,
    TranscriptionResult,
    Word,
)
from transcript_pipeline.asr.mapper import decode_payload, map_transcript

__all__ = [
    "Job",
    "JobStatus",
    "NormalizedTranscript",
    "Sentence",
    "TranscriptionDiagnostics",
    "TranscriptionEngine",
    "TranscriptionResult",
    "Word",
    "decode_payload",
    "map_transcript",
]
