"""Pipeline configuration.

PipelineConfig is an immutable value object consumed by the pipeline. It can
be built directly or loaded from environment variables:

    ASSEMBLYAI_API_KEY, ASSEMBLYAI_BASE_URL, ASSEMBLYAI_POLL_INTERVAL_MS,
    ASSEMBLYAI_OVERALL_TIMEOUT_SECONDS, ASSEMBLYAI_MAX_UPLOAD_ATTEMPTS,
    ASSEMBLYAI_BASE_BACKOFF_MS, ASSEMBLYAI_REQUEST_TIMEOUT_SECONDS,
    ASSEMBLYAI_RETRY_JOB_CREATION, ASSEMBLYAI_RETRY_POLLING
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_BASE_URL = "https://api.assemblyai.com/v2"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class PipelineConfig:
    """Settings for one transcription pipeline.

    Attributes:
        api_key: Credential sent in the `authorization` header of every request.
        base_url: Remote API base URL.
        poll_interval_ms: Wait between job status queries.
        overall_timeout_seconds: Wall-clock deadline for the polling phase.
        max_upload_attempts: Total upload attempts, including the first.
        base_backoff_ms: Base delay for full-jitter backoff.
        request_timeout_seconds: Per-request network timeout.
        retry_job_creation: Retry transient job creation failures with the
            upload bounds instead of failing immediately.
        retry_polling: Keep polling through transient status query failures
            instead of failing immediately.
    """

    api_key: str
    base_url: str = DEFAULT_BASE_URL
    poll_interval_ms: int = 2500
    overall_timeout_seconds: float = 300.0
    max_upload_attempts: int = 3
    base_backoff_ms: int = 500
    request_timeout_seconds: float = 300.0
    retry_job_creation: bool = False
    retry_polling: bool = False

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ValueError("api_key is required")
        if not self.base_url:
            raise ValueError("base_url is required")
        if self.poll_interval_ms < 0:
            raise ValueError("poll_interval_ms must not be negative")
        if self.overall_timeout_seconds < 0:
            raise ValueError("overall_timeout_seconds must not be negative")
        if self.max_upload_attempts < 1:
            raise ValueError("max_upload_attempts must be at least 1")
        if self.base_backoff_ms < 0:
            raise ValueError("base_backoff_ms must not be negative")
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @property
    def upload_url(self) -> str:
        return f"{self.base_url}/upload"

    @property
    def transcript_url(self) -> str:
        return f"{self.base_url}/transcript"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> PipelineConfig:
        """Load configuration from environment variables.

        Args:
            environ: Mapping to read instead of os.environ.

        Returns:
            A validated PipelineConfig.

        Raises:
            ValueError: If a variable is missing or cannot be parsed.
        """
        env = os.environ if environ is None else environ
        return cls(
            api_key=env.get("ASSEMBLYAI_API_KEY", ""),
            base_url=env.get("ASSEMBLYAI_BASE_URL", DEFAULT_BASE_URL),
            poll_interval_ms=_as_int(env, "ASSEMBLYAI_POLL_INTERVAL_MS", 2500),
            overall_timeout_seconds=_as_float(
                env, "ASSEMBLYAI_OVERALL_TIMEOUT_SECONDS", 300.0
            ),
            max_upload_attempts=_as_int(env, "ASSEMBLYAI_MAX_UPLOAD_ATTEMPTS", 3),
            base_backoff_ms=_as_int(env, "ASSEMBLYAI_BASE_BACKOFF_MS", 500),
            request_timeout_seconds=_as_float(
                env, "ASSEMBLYAI_REQUEST_TIMEOUT_SECONDS", 300.0
            ),
            retry_job_creation=_as_bool(env, "ASSEMBLYAI_RETRY_JOB_CREATION"),
            retry_polling=_as_bool(env, "ASSEMBLYAI_RETRY_POLLING"),
        )


def _as_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from exc


def _as_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got '{raw}'") from exc


def _as_bool(env: Mapping[str, str], name: str) -> bool:
    raw = env.get(name, "").strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got '{raw}'")
