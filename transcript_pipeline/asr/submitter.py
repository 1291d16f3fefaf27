"""Transcription job creation.

POSTs the upload reference to /transcript with punctuation, text
formatting and speaker labels enabled. By default any non-2xx response
fails immediately; with retry_job_creation enabled, transient failures
are retried with the same bounds as uploads.
"""

import logging
from typing import Any

import httpx

from transcript_pipeline.asr.interface import Job
from transcript_pipeline.asr.transport import (
    auth_headers,
    failure_for_status,
    is_success,
    network_failure,
    read_json_object,
    response_preview,
)
from transcript_pipeline.config import PipelineConfig
from transcript_pipeline.utils.cancellation import CancellationToken
from transcript_pipeline.utils.errors import MalformedResponseError
from transcript_pipeline.utils.retry import (
    AttemptResult,
    NonRetryableFailure,
    Success,
    retry_async,
)

logger = logging.getLogger(__name__)


def build_job_request(upload_reference: str) -> dict[str, Any]:
    """Fixed-shape job creation body."""
    return {
        "audio_url": upload_reference,
        "punctuate": True,
        "format_text": True,
        "speaker_labels": True,
    }


class JobSubmitter:
    """Creates remote transcription jobs.

    Args:
        client: HTTP client; may be shared across requests.
        config: Pipeline configuration.
    """

    def __init__(self, client: httpx.AsyncClient, config: PipelineConfig) -> None:
        self._client = client
        self._config = config

    async def create_job(
        self, upload_reference: str, cancel: CancellationToken | None = None
    ) -> Job:
        """Create a job for `upload_reference` and return it.

        Raises:
            UpstreamClientError: On a 4xx response.
            MalformedResponseError: If the response carries no job id.
            UpstreamTransientError: On a 5xx/408/network failure (after
                retries, when retry_job_creation is enabled).
            PipelineCancelledError: If cancelled.
        """
        cancel = cancel or CancellationToken()

        if self._config.retry_job_creation:

            async def attempt() -> AttemptResult:
                return await self._attempt(upload_reference, cancel)

            result = await retry_async(
                attempt,
                self._config.max_upload_attempts,
                self._config.base_backoff_ms,
                name="create_job",
                cancel=cancel,
            )
            job: Job = result.result
        else:
            outcome = await self._attempt(upload_reference, cancel)
            if not isinstance(outcome, Success):
                outcome.error.attempts = 1  # type: ignore[attr-defined]
                logger.error(
                    "Job creation failed: %s",
                    outcome.error,
                    extra={"stage": "create_job"},
                )
                raise outcome.error
            job = outcome.value

        logger.debug(
            "Job creation accepted for %s",
            upload_reference,
            extra={"stage": "create_job", "job_id": job.id},
        )
        return job

    async def _attempt(
        self, upload_reference: str, cancel: CancellationToken
    ) -> AttemptResult:
        cancel.raise_if_cancelled("create_job")
        try:
            response = await self._client.post(
                self._config.transcript_url,
                headers=auth_headers(self._config.api_key),
                json=build_job_request(upload_reference),
                timeout=self._config.request_timeout_seconds,
            )
        except httpx.TransportError as exc:
            return network_failure(exc, "job creation")

        if not is_success(response):
            return failure_for_status(response, "job creation")

        try:
            body = read_json_object(response, "job creation")
        except MalformedResponseError as exc:
            return NonRetryableFailure(exc)

        job_id = body.get("id")
        if not isinstance(job_id, str) or not job_id.strip():
            return NonRetryableFailure(
                MalformedResponseError(
                    "No job id in job creation response: "
                    f"{response_preview(response)}",
                    status_code=response.status_code,
                )
            )
        return Success(Job(id=job_id.strip()))
