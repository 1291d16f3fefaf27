"""Transcription pipeline orchestrator.

Orchestrates: validate input -> upload (with retry) -> create job -> poll
until terminal -> map payload -> normalized transcript + diagnostics.
Emits one metrics line per run, whether it succeeds or fails.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, TextIO

import httpx

from transcript_pipeline.asr.interface import (
    TranscriptionDiagnostics,
    TranscriptionEngine,
    TranscriptionResult,
)
from transcript_pipeline.asr.mapper import build_transcript, decode_payload
from transcript_pipeline.asr.poller import Poller
from transcript_pipeline.asr.streams import AudioSource, ReplayableAudio
from transcript_pipeline.asr.submitter import JobSubmitter
from transcript_pipeline.asr.uploader import Uploader
from transcript_pipeline.config import PipelineConfig
from transcript_pipeline.observability.metrics import (
    StageTimer,
    TranscriptionMetrics,
    log_transcription_metrics,
)
from transcript_pipeline.utils.cancellation import CancellationToken
from transcript_pipeline.utils.errors import InvalidInputError, PipelineError

logger = logging.getLogger(__name__)


class TranscriptionPipeline(TranscriptionEngine):
    """Drives a remote transcription job from audio bytes to transcript.

    Each call to transcribe() is an independent, sequential run. The only
    state shared between runs is the optional pooled HTTP client, which is
    never mutated: the credential is attached to each request.

    Args:
        config: Pipeline configuration (default: loaded from environment).
        client: Optional shared httpx.AsyncClient. When omitted, a client is
            created for each run and closed when the run ends.
        metrics_stream: Where metrics lines are written (default stdout).
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        client: httpx.AsyncClient | None = None,
        metrics_stream: TextIO | None = None,
    ) -> None:
        self._config = config or PipelineConfig.from_env()
        self._client = client
        self._metrics_stream = metrics_stream

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @asynccontextmanager
    async def _client_scope(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            timeout=self._config.request_timeout_seconds
        ) as client:
            yield client

    async def transcribe(
        self, source: AudioSource, cancel: CancellationToken | None = None
    ) -> TranscriptionResult:
        """Transcribe audio bytes or a byte stream.

        Args:
            source: Audio bytes, a binary file-like object (seekable or not)
                or an async iterable of byte chunks.
            cancel: Optional cooperative cancellation token.

        Returns:
            TranscriptionResult with the normalized transcript and diagnostics.

        Raises:
            InvalidInputError: If the source is missing or empty.
            UpstreamClientError: On a non-retryable remote response.
            UpstreamTransientError: When transient failures exhaust retries.
            JobError: If the remote job fails.
            PollTimeoutError: If the job does not finish before the deadline.
            PipelineCancelledError: If cancelled.
        """
        cancel = cancel or CancellationToken()
        diagnostics = TranscriptionDiagnostics()
        metrics = TranscriptionMetrics(status="failed")
        started = time.monotonic()
        audio: ReplayableAudio | None = None

        try:
            cancel.raise_if_cancelled("upload")
            audio = await ReplayableAudio.prepare(source, cancel)
            metrics.audio_size_bytes = audio.size

            async with self._client_scope() as client:
                upload_reference = await self._upload(
                    client, audio, cancel, diagnostics
                )
                audio.release()
                audio = None
                return await self._run_job(
                    client, upload_reference, cancel, diagnostics, metrics
                )
        except PipelineError as exc:
            self._record_failure(exc, diagnostics, metrics)
            raise
        except asyncio.CancelledError:
            metrics.status = "cancelled"
            metrics.error_kind = "cancelled"
            raise
        finally:
            if audio is not None:
                audio.release()
            self._emit_metrics(metrics, diagnostics, started)

    async def transcribe_url(
        self, audio_url: str, cancel: CancellationToken | None = None
    ) -> TranscriptionResult:
        """Transcribe audio already hosted at `audio_url`, skipping the upload.

        Raises:
            InvalidInputError: If `audio_url` is empty.
            See transcribe() for the remaining errors.
        """
        cancel = cancel or CancellationToken()
        diagnostics = TranscriptionDiagnostics()
        metrics = TranscriptionMetrics(status="failed")
        started = time.monotonic()

        try:
            if not audio_url or not audio_url.strip():
                raise InvalidInputError("No audio URL provided")
            async with self._client_scope() as client:
                return await self._run_job(
                    client, audio_url.strip(), cancel, diagnostics, metrics
                )
        except PipelineError as exc:
            self._record_failure(exc, diagnostics, metrics)
            raise
        except asyncio.CancelledError:
            metrics.status = "cancelled"
            metrics.error_kind = "cancelled"
            raise
        finally:
            self._emit_metrics(metrics, diagnostics, started)

    async def _upload(
        self,
        client: httpx.AsyncClient,
        audio: ReplayableAudio,
        cancel: CancellationToken,
        diagnostics: TranscriptionDiagnostics,
    ) -> str:
        uploader = Uploader(client, self._config)
        try:
            with StageTimer("upload", diagnostics.stage_timings):
                result = await uploader.upload(audio, cancel)
        except PipelineError as exc:
            diagnostics.upload_attempts = exc.attempts or len(exc.history)
            diagnostics.logs.extend(exc.log)
            diagnostics.attempts.extend(exc.history)
            raise

        diagnostics.upload_attempts = result.attempts
        diagnostics.logs.extend(result.log)
        diagnostics.attempts.extend(result.history)
        return result.result

    async def _run_job(
        self,
        client: httpx.AsyncClient,
        upload_reference: str,
        cancel: CancellationToken,
        diagnostics: TranscriptionDiagnostics,
        metrics: TranscriptionMetrics,
    ) -> TranscriptionResult:
        submitter = JobSubmitter(client, self._config)
        try:
            with StageTimer("create_job", diagnostics.stage_timings):
                job = await submitter.create_job(upload_reference, cancel)
        except PipelineError as exc:
            diagnostics.logs.extend(exc.log)
            raise
        diagnostics.job_id = job.id
        self._note(diagnostics, job.id, "Created transcription job %s", job.id)

        poller = Poller(client, self._config)
        try:
            with StageTimer("poll", diagnostics.stage_timings):
                payload = await poller.wait_for_completion(
                    job, cancel, log=diagnostics.logs
                )
        finally:
            metrics.poll_count = poller.polls

        with StageTimer("map", diagnostics.stage_timings):
            decoded = decode_payload(payload)
            transcript = build_transcript(decoded)
        diagnostics.payload_shape = decoded.shape
        self._note(
            diagnostics,
            job.id,
            "Mapped %s payload: %d sentence(s), %d word(s)",
            decoded.shape,
            len(transcript.sentences),
            len(transcript.words),
        )

        metrics.status = "completed"
        metrics.sentence_count = len(transcript.sentences)
        metrics.word_count = len(transcript.words)
        return TranscriptionResult(transcript=transcript, diagnostics=diagnostics)

    @staticmethod
    def _note(
        diagnostics: TranscriptionDiagnostics, job_id: str, msg: str, *args: Any
    ) -> None:
        text = msg % args
        diagnostics.logs.append(text)
        logger.info(text, extra={"job_id": job_id})

    @staticmethod
    def _record_failure(
        exc: PipelineError,
        diagnostics: TranscriptionDiagnostics,
        metrics: TranscriptionMetrics,
    ) -> None:
        if exc.job_id is None and diagnostics.job_id:
            exc.job_id = diagnostics.job_id
        exc.log = diagnostics.logs if diagnostics.logs else exc.log
        metrics.status = "cancelled" if exc.kind == "cancelled" else "failed"
        metrics.error_kind = exc.kind
        metrics.error_message = exc.message
        logger.error(
            "Transcription failed (%s): %s",
            exc.kind,
            exc,
            extra={"job_id": exc.job_id, "error": exc.kind},
        )

    def _emit_metrics(
        self,
        metrics: TranscriptionMetrics,
        diagnostics: TranscriptionDiagnostics,
        started: float,
    ) -> None:
        metrics.job_id = diagnostics.job_id
        metrics.upload_attempts = diagnostics.upload_attempts
        metrics.payload_shape = diagnostics.payload_shape
        metrics.stage_timings = dict(diagnostics.stage_timings)
        metrics.wall_time_seconds = time.monotonic() - started
        log_transcription_metrics(metrics, stream=self._metrics_stream)


async def transcribe_audio(
    source: AudioSource,
    config: PipelineConfig | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    cancel: CancellationToken | None = None,
) -> TranscriptionResult:
    """Run one transcription with a throwaway TranscriptionPipeline."""
    pipeline = TranscriptionPipeline(config, client=client)
    return await pipeline.transcribe(source, cancel)
