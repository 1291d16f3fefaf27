"""Transcription engine interface and transcript data models.

Defines the TranscriptionEngine ABC, the remote Job model and the
normalized transcript returned to callers regardless of which response
shape the remote service produced.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from transcript_pipeline.asr.postprocess import (
    format_confidence,
    format_timestamp,
    format_timestamp_precise,
)
from transcript_pipeline.utils.retry import AttemptRecord

if TYPE_CHECKING:
    from transcript_pipeline.asr.streams import AudioSource
    from transcript_pipeline.utils.cancellation import CancellationToken


class JobStatus(str, Enum):
    """Remote job status as reported by GET /transcript/{id}."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR)

    @classmethod
    def parse(cls, value: Any) -> JobStatus | None:
        """Return the matching status, or None for unknown values."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


_STATUS_RANK = {
    JobStatus.QUEUED: 0,
    JobStatus.PROCESSING: 1,
    JobStatus.COMPLETED: 2,
    JobStatus.ERROR: 2,
}


@dataclass
class Job:
    """A remote transcription job."""

    id: str
    status: JobStatus = JobStatus.QUEUED
    error: str | None = None

    def advance(self, status: JobStatus) -> JobStatus:
        """Move the job toward a terminal state.

        Backwards reports (e.g. queued after processing) keep the current
        status. Terminal states are final.

        Raises:
            ValueError: If the job is terminal and `status` differs.
        """
        if self.status.is_terminal:
            if status != self.status:
                raise ValueError(
                    f"Job {self.id} is already {self.status.value}, "
                    f"cannot move to {status.value}"
                )
            return self.status
        if _STATUS_RANK[status] >= _STATUS_RANK[self.status]:
            self.status = status
        return self.status


@dataclass(frozen=True)
class Word:
    """A single word with timing (ms) and confidence (0..1)."""

    speaker: str
    text: str
    start_ms: int
    end_ms: int
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "speaker": self.speaker,
            "text": self.text,
            "start": self.start_ms,
            "end": self.end_ms,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class Sentence:
    """A speaker-attributed segment of the transcript."""

    speaker: str
    text: str
    start_ms: int
    end_ms: int
    confidence: float

    @property
    def start(self) -> str:
        return format_timestamp(self.start_ms)

    @property
    def end(self) -> str:
        return format_timestamp(self.end_ms)

    @property
    def confidence_percent(self) -> str:
        return format_confidence(self.confidence)

    def to_dict(self, precise: bool = False) -> dict[str, Any]:
        fmt = format_timestamp_precise if precise else format_timestamp
        return {
            "speaker": self.speaker,
            "text": self.text,
            "start_ms": self.start_ms,
            "end_ms": self.end_ms,
            "start": fmt(self.start_ms),
            "end": fmt(self.end_ms),
            "confidence": self.confidence_percent,
        }


@dataclass
class NormalizedTranscript:
    """Stable transcript shape, independent of the remote response variant."""

    full_text: str = ""
    sentences: list[Sentence] = field(default_factory=list)
    words: list[Word] = field(default_factory=list)

    def to_dict(self, precise: bool = False) -> dict[str, Any]:
        return {
            "full_text": self.full_text,
            "sentences": [s.to_dict(precise=precise) for s in self.sentences],
            "words": [w.to_dict() for w in self.words],
        }


@dataclass
class TranscriptionDiagnostics:
    """Per-request observability data returned next to the transcript."""

    upload_attempts: int = 0
    logs: list[str] = field(default_factory=list)
    attempts: list[AttemptRecord] = field(default_factory=list)
    job_id: str | None = None
    payload_shape: str | None = None
    stage_timings: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "upload_attempts": self.upload_attempts,
            "logs": list(self.logs),
            "attempts": [a.to_dict() for a in self.attempts],
            "job_id": self.job_id,
            "payload_shape": self.payload_shape,
            "stage_timings": {
                k: round(v, 3) for k, v in self.stage_timings.items()
            },
        }


@dataclass
class TranscriptionResult:
    """Normalized transcript plus diagnostics for one request."""

    transcript: NormalizedTranscript
    diagnostics: TranscriptionDiagnostics

    def to_dict(self, precise: bool = False) -> dict[str, Any]:
        return {
            **self.transcript.to_dict(precise=precise),
            "diagnostics": self.diagnostics.to_dict(),
        }


class TranscriptionEngine(ABC):
    """Abstract base class for remote transcription engines.

    Subclasses must implement transcribe() and transcribe_url().
    """

    @abstractmethod
    async def transcribe(
        self, source: AudioSource, cancel: CancellationToken | None = None
    ) -> TranscriptionResult:
        """Upload audio, run a remote job and return the normalized transcript.

        Args:
            source: Audio bytes, a binary file-like object or an async
                iterable of byte chunks.
            cancel: Optional cooperative cancellation token.

        Returns:
            TranscriptionResult with transcript and diagnostics.
        """

    @abstractmethod
    async def transcribe_url(
        self, audio_url: str, cancel: CancellationToken | None = None
    ) -> TranscriptionResult:
        """Run a remote job for audio that is already hosted at `audio_url`."""
