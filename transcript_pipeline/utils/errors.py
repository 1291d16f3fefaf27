"""Custom exception hierarchy for the transcription pipeline.

All exceptions inherit from PipelineError, enabling targeted handling
at pipeline boundaries while preserving specific failure context. Each
class carries a stable ``kind`` string that a surrounding transport layer
can map to its own status codes.
"""

from __future__ import annotations

from typing import Any


class PipelineError(Exception):
    """Base exception for all transcription pipeline errors."""

    kind = "pipeline_error"

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.message = message
        self.job_id = job_id
        self.status_code = status_code
        self.attempts: int | None = None
        self.log: list[str] = []
        self.history: list[Any] = []
        super().__init__(message)

    def __str__(self) -> str:
        if self.job_id:
            return f"[job={self.job_id}] {super().__str__()}"
        return super().__str__()

    def to_dict(self) -> dict[str, Any]:
        """Serialize kind, message and context for an outer layer."""
        data: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.job_id:
            data["job_id"] = self.job_id
        if self.status_code is not None:
            data["status_code"] = self.status_code
        if self.attempts is not None:
            data["attempts"] = self.attempts
        if self.log:
            data["log"] = list(self.log)
        return data


class InvalidInputError(PipelineError):
    """Raised when the audio input is missing, unreadable or empty."""

    kind = "invalid_input"


class UpstreamClientError(PipelineError):
    """Raised for non-retryable remote failures (4xx other than 408)."""

    kind = "upstream_client_error"

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self.body = body
        super().__init__(message, job_id, status_code)


class MalformedResponseError(UpstreamClientError):
    """Raised when a 2xx response does not carry the expected fields."""

    kind = "malformed_response"


class UpstreamTransientError(PipelineError):
    """Raised for 5xx, 408 and network failures once retries are exhausted."""

    kind = "upstream_transient_error"

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        status_code: int | None = None,
        last_error: BaseException | None = None,
    ) -> None:
        self.last_error = last_error
        super().__init__(message, job_id, status_code)


class JobError(PipelineError):
    """Raised when the remote service reports the job as failed."""

    kind = "job_error"

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        remote_message: str | None = None,
    ) -> None:
        self.remote_message = remote_message
        super().__init__(message, job_id)


class PollTimeoutError(PipelineError):
    """Raised when polling exceeds the overall wall-clock deadline."""

    kind = "timed_out"

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(message, job_id)


class PipelineCancelledError(PipelineError):
    """Raised when the caller cancels a transcription in flight."""

    kind = "cancelled"

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        stage: str | None = None,
    ) -> None:
        self.stage = stage
        super().__init__(message, job_id)
