"""Audio upload to the remote service with bounded retries.

Each attempt rewinds the audio and POSTs the raw bytes to /upload. The
response is classified into a tagged outcome and the whole operation runs
under retry_async() with full-jitter backoff.
"""

import logging

import httpx

from transcript_pipeline.asr.streams import ReplayableAudio
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
    RetryResult,
    Success,
    retry_async,
)

logger = logging.getLogger(__name__)

UPLOAD_CONTENT_TYPE = "application/octet-stream"


def interpret_upload_response(response: httpx.Response) -> AttemptResult:
    """Classify an upload response.

    2xx with a non-empty upload_url is a success. 2xx without one is a
    malformed success (non-retryable). 5xx and 408 are transient; other
    4xx are non-retryable.
    """
    if not is_success(response):
        return failure_for_status(response, "upload")

    try:
        body = read_json_object(response, "upload")
    except MalformedResponseError as exc:
        return NonRetryableFailure(exc)

    upload_url = body.get("upload_url")
    if not isinstance(upload_url, str) or not upload_url.strip():
        return NonRetryableFailure(
            MalformedResponseError(
                "Upload succeeded but upload_url is missing or empty: "
                f"{response_preview(response)}",
                status_code=response.status_code,
            )
        )
    return Success(upload_url.strip())


class Uploader:
    """Sends audio to the upload endpoint and returns the upload reference.

    Args:
        client: HTTP client; may be shared across requests.
        config: Pipeline configuration (credential, bounds, base URL).
    """

    def __init__(self, client: httpx.AsyncClient, config: PipelineConfig) -> None:
        self._client = client
        self._config = config

    async def upload(
        self, audio: ReplayableAudio, cancel: CancellationToken | None = None
    ) -> RetryResult[str]:
        """Upload `audio`, retrying transient failures.

        Returns:
            RetryResult whose result is the upload reference (upload_url).

        Raises:
            UpstreamClientError: On a non-retryable response.
            UpstreamTransientError: When all attempts failed transiently.
            PipelineCancelledError: If cancelled.
        """
        cancel = cancel or CancellationToken()

        async def attempt() -> AttemptResult:
            return await self._attempt(audio, cancel)

        result = await retry_async(
            attempt,
            self._config.max_upload_attempts,
            self._config.base_backoff_ms,
            name="upload",
            cancel=cancel,
        )
        logger.info(
            "Uploaded %d bytes in %d attempt(s)",
            audio.size,
            result.attempts,
            extra={"stage": "upload", "attempt": result.attempts},
        )
        return result

    async def _attempt(
        self, audio: ReplayableAudio, cancel: CancellationToken
    ) -> AttemptResult:
        cancel.raise_if_cancelled("upload")
        audio.rewind()
        try:
            response = await self._client.post(
                self._config.upload_url,
                headers=auth_headers(self._config.api_key, UPLOAD_CONTENT_TYPE),
                content=audio.body(),
                timeout=self._config.request_timeout_seconds,
            )
        except httpx.TransportError as exc:
            logger.warning("Upload attempt failed to send request: %r", exc)
            return network_failure(exc, "upload")

        logger.debug(
            "Upload response: %d; body: %s",
            response.status_code,
            response_preview(response),
            extra={"stage": "upload"},
        )
        if response.status_code in (401, 403):
            logger.error(
                "Authorization failed. Check the API key and authorization header."
            )
        return interpret_upload_response(response)
