"""Job status polling under a single wall-clock deadline.

State machine: queued -> processing -> {completed | error}. Each loop
iteration suspends for the poll interval, checks cancellation, queries the
job and then either returns the completed payload, raises, or continues.
One deadline covers the whole phase: the interval wait is capped at the
time left and an in-flight status request is abandoned when it runs out.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

import httpx

from transcript_pipeline.asr.interface import Job, JobStatus
from transcript_pipeline.asr.transport import (
    auth_headers,
    failure_for_status,
    is_success,
    network_failure,
    read_json_object,
    truncate,
)
from transcript_pipeline.config import PipelineConfig
from transcript_pipeline.utils.cancellation import CancellationToken
from transcript_pipeline.utils.errors import (
    JobError,
    MalformedResponseError,
    PollTimeoutError,
)
from transcript_pipeline.utils.retry import NonRetryableFailure, TransientFailure

logger = logging.getLogger(__name__)


class Poller:
    """Polls a remote job until it reaches a terminal state.

    Args:
        client: HTTP client; may be shared across requests.
        config: Pipeline configuration (interval, deadline, retry_polling).
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: PipelineConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._config = config
        self._clock = clock
        self.polls = 0

    async def wait_for_completion(
        self,
        job: Job,
        cancel: CancellationToken | None = None,
        log: list[str] | None = None,
    ) -> dict[str, Any]:
        """Poll `job` until completed and return the terminal payload.

        Args:
            job: Job to poll; its status is advanced as reports arrive.
            cancel: Optional cancellation token.
            log: Optional diagnostics log that receives poll events.

        Returns:
            The JSON payload of the first "completed" response.

        Raises:
            JobError: If the remote reports status "error".
            PollTimeoutError: If the deadline passes before a terminal status,
                including while a status request is in flight.
            PipelineCancelledError: If cancelled before a wait or a request.
            UpstreamClientError: On a non-retryable status response.
            UpstreamTransientError: On a transient status failure (unless
                retry_polling is enabled).
            MalformedResponseError: On an unusable status payload.
        """
        cancel = cancel or CancellationToken()
        log = log if log is not None else []
        interval = self._config.poll_interval_ms / 1000
        timeout = self._config.overall_timeout_seconds
        started = self._clock()

        def remaining() -> float:
            return timeout - (self._clock() - started)

        while True:
            await cancel.sleep(
                min(interval, max(remaining(), 0.0)), stage="poll", job_id=job.id
            )
            cancel.raise_if_cancelled("poll", job_id=job.id)

            # The deadline bounds the in-flight request too
            left = remaining()
            if left <= 0:
                raise self._timed_out(job, log, timeout, timeout - left)
            try:
                outcome = await asyncio.wait_for(self._query(job), timeout=left)
            except TimeoutError:
                self.polls += 1
                raise self._timed_out(
                    job, log, timeout, timeout - remaining()
                ) from None
            self.polls += 1

            if isinstance(outcome, NonRetryableFailure):
                raise outcome.error
            if isinstance(outcome, TransientFailure):
                if not self._config.retry_polling:
                    raise outcome.error
                self._note(
                    log,
                    logging.WARNING,
                    job,
                    "Poll %d for job %s failed transiently: %s",
                    self.polls,
                    job.id,
                    outcome.error,
                )
            else:
                status = JobStatus.parse(outcome.get("status"))
                if status is None:
                    raise MalformedResponseError(
                        "Unrecognized job status: "
                        f"{truncate(str(outcome.get('status')), 100)}",
                        job_id=job.id,
                    )

                job.advance(status)

                if status == JobStatus.COMPLETED:
                    self._note(
                        log,
                        logging.INFO,
                        job,
                        "Job %s completed after %d poll(s)",
                        job.id,
                        self.polls,
                    )
                    return outcome

                if status == JobStatus.ERROR:
                    remote = outcome.get("error")
                    message = str(remote) if remote else "unknown error"
                    job.error = message
                    self._note(
                        log, logging.ERROR, job, "Job %s failed: %s", job.id, message
                    )
                    raise JobError(
                        f"Transcription error: {message}",
                        job_id=job.id,
                        remote_message=message,
                    )

                logger.debug(
                    "Job %s is %s",
                    job.id,
                    status.value,
                    extra={"stage": "poll", "job_id": job.id},
                )

    def _timed_out(
        self, job: Job, log: list[str], timeout: float, elapsed: float
    ) -> PollTimeoutError:
        self._note(
            log,
            logging.ERROR,
            job,
            "Job %s timed out after %.1fs (%d poll(s))",
            job.id,
            elapsed,
            self.polls,
        )
        return PollTimeoutError(
            f"Job {job.id} timed out after {timeout}s",
            job_id=job.id,
            timeout_seconds=timeout,
        )

    async def _query(
        self, job: Job
    ) -> dict[str, Any] | TransientFailure | NonRetryableFailure:
        try:
            response = await self._client.get(
                f"{self._config.transcript_url}/{job.id}",
                headers=auth_headers(self._config.api_key),
                timeout=self._config.request_timeout_seconds,
            )
        except httpx.TransportError as exc:
            return network_failure(exc, "poll", job_id=job.id)

        if not is_success(response):
            return failure_for_status(response, "poll", job_id=job.id)

        try:
            return read_json_object(response, "poll", job_id=job.id)
        except MalformedResponseError as exc:
            return NonRetryableFailure(exc)

    @staticmethod
    def _note(log: list[str], level: int, job: Job, msg: str, *args: Any) -> None:
        text = msg % args
        log.append(text)
        logger.log(level, text, extra={"stage": "poll", "job_id": job.id})
