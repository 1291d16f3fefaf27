"""HTTP helpers shared by the uploader, job submitter and poller.

The credential header is built fresh for every request. Callers may share
one pooled httpx.AsyncClient across concurrent transcriptions, so nothing
here mutates client state.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from transcript_pipeline.utils.errors import (
    MalformedResponseError,
    UpstreamClientError,
    UpstreamTransientError,
)
from transcript_pipeline.utils.retry import (
    NonRetryableFailure,
    TransientFailure,
    is_transient_status,
)

BODY_PREVIEW_CHARS = 500


def auth_headers(api_key: str, content_type: str | None = None) -> dict[str, str]:
    """Build per-request headers carrying the credential."""
    headers = {"authorization": api_key}
    if content_type:
        headers["content-type"] = content_type
    return headers


def truncate(text: str | None, limit: int = BODY_PREVIEW_CHARS) -> str:
    if not text:
        return ""
    return text if len(text) <= limit else text[:limit] + "..."


def response_preview(response: httpx.Response) -> str:
    """Return a truncated body for log lines and error messages."""
    try:
        return truncate(response.text)
    except (UnicodeDecodeError, httpx.ResponseNotRead):
        return "<unable to read response body>"


def is_success(response: httpx.Response) -> bool:
    return 200 <= response.status_code < 300


def failure_for_status(
    response: httpx.Response, action: str, job_id: str | None = None
) -> TransientFailure | NonRetryableFailure:
    """Classify a non-2xx response into a tagged failure.

    5xx and 408 are transient; every other status is non-retryable.
    """
    status = response.status_code
    body = response_preview(response)
    if is_transient_status(status):
        return TransientFailure(
            UpstreamTransientError(
                f"Transient {action} error {status}: {body}",
                job_id=job_id,
                status_code=status,
            )
        )
    return NonRetryableFailure(
        UpstreamClientError(
            f"Non-retryable {action} error {status}: {body}",
            job_id=job_id,
            status_code=status,
            body=body,
        )
    )


def network_failure(
    exc: httpx.TransportError, action: str, job_id: str | None = None
) -> TransientFailure:
    """Wrap a network-level exception as a transient failure."""
    kind = "timed out" if isinstance(exc, httpx.TimeoutException) else "failed"
    return TransientFailure(
        UpstreamTransientError(
            f"{action.capitalize()} request {kind}: {exc!r}",
            job_id=job_id,
            last_error=exc,
        )
    )


def read_json_object(
    response: httpx.Response, action: str, job_id: str | None = None
) -> dict[str, Any]:
    """Decode a 2xx response body as a JSON object.

    Raises:
        MalformedResponseError: If the body is not a JSON object.
    """
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedResponseError(
            f"{action.capitalize()} succeeded but response JSON is invalid: "
            f"{response_preview(response)}",
            job_id=job_id,
            status_code=response.status_code,
            body=response_preview(response),
        ) from exc
    if not isinstance(body, dict):
        raise MalformedResponseError(
            f"{action.capitalize()} succeeded but response is not a JSON object: "
            f"{truncate(str(body), 200)}",
            job_id=job_id,
            status_code=response.status_code,
        )
    return body
