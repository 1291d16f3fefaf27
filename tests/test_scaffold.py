"""Tests for project scaffold: imports, logger, and custom exceptions."""

import io
import json
import logging

import pytest

from transcript_pipeline.observability.logger import (
    StructuredJsonFormatter,
    setup_logging,
)
from transcript_pipeline.utils.errors import (
    InvalidInputError,
    JobError,
    MalformedResponseError,
    PipelineCancelledError,
    PipelineError,
    PollTimeoutError,
    UpstreamClientError,
    UpstreamTransientError,
)


class TestModuleImports:
    """Verify all package modules are importable."""

    def test_top_level_import(self) -> None:
        import transcript_pipeline

        assert transcript_pipeline.TranscriptionPipeline is not None
        assert transcript_pipeline.transcribe_audio is not None

    def test_subpackage_imports(self) -> None:
        import transcript_pipeline.asr
        import transcript_pipeline.observability
        import transcript_pipeline.utils

        assert transcript_pipeline.asr is not None
        assert transcript_pipeline.observability is not None
        assert transcript_pipeline.utils is not None


class TestCustomExceptions:
    """Verify custom exception hierarchy and string representations."""

    def test_all_exceptions_inherit_from_pipeline_error(self) -> None:
        exception_classes = [
            InvalidInputError,
            UpstreamClientError,
            MalformedResponseError,
            UpstreamTransientError,
            JobError,
            PollTimeoutError,
            PipelineCancelledError,
        ]
        for cls in exception_classes:
            assert issubclass(cls, PipelineError), (
                f"{cls.__name__} must inherit from PipelineError"
            )

    def test_malformed_response_is_a_client_error(self) -> None:
        assert issubclass(MalformedResponseError, UpstreamClientError)

    @pytest.mark.parametrize(
        "cls,kind",
        [
            (InvalidInputError, "invalid_input"),
            (UpstreamClientError, "upstream_client_error"),
            (MalformedResponseError, "malformed_response"),
            (UpstreamTransientError, "upstream_transient_error"),
            (JobError, "job_error"),
            (PollTimeoutError, "timed_out"),
            (PipelineCancelledError, "cancelled"),
        ],
    )
    def test_kinds_are_distinct_and_stable(self, cls: type, kind: str) -> None:
        assert cls.kind == kind

    def test_pipeline_error_str_without_job_id(self) -> None:
        error = PipelineError("something failed")
        assert str(error) == "something failed"

    def test_pipeline_error_str_with_job_id(self) -> None:
        error = PipelineError("something failed", job_id="job-123")
        assert "[job=job-123]" in str(error)
        assert "something failed" in str(error)

    def test_client_error_includes_body(self) -> None:
        error = UpstreamClientError("rejected", status_code=400, body='{"error":"x"}')
        assert error.status_code == 400
        assert error.body == '{"error":"x"}'

    def test_job_error_includes_remote_message(self) -> None:
        error = JobError("Transcription error: bad audio", "j-1", "bad audio")
        assert error.remote_message == "bad audio"
        assert "[job=j-1]" in str(error)

    def test_to_dict(self) -> None:
        error = UpstreamTransientError("upload failed", status_code=503)
        error.attempts = 3
        error.log = ["Attempt 1/3 for upload: starting"]

        assert error.to_dict() == {
            "kind": "upstream_transient_error",
            "message": "upload failed",
            "status_code": 503,
            "attempts": 3,
            "log": ["Attempt 1/3 for upload: starting"],
        }


def _json_logger(name: str, stream: io.StringIO) -> logging.Logger:
    logger = logging.getLogger(name)
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredJsonFormatter())
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return logger


class TestStructuredJsonFormatter:
    """Verify the JSON formatter output."""

    def test_emits_json_with_required_fields(self) -> None:
        stream = io.StringIO()
        logger = _json_logger("test.scaffold.required", stream)

        logger.info("Upload started")

        entry = json.loads(stream.getvalue().strip())
        assert entry["severity"] == "INFO"
        assert entry["message"] == "Upload started"
        assert entry["logger"] == "test.scaffold.required"
        assert "timestamp" in entry

    def test_includes_extra_fields(self) -> None:
        stream = io.StringIO()
        logger = _json_logger("test.scaffold.extra", stream)

        logger.warning(
            "Attempt failed", extra={"job_id": "job-9", "stage": "poll", "attempt": 2}
        )

        entry = json.loads(stream.getvalue().strip())
        assert entry["severity"] == "WARNING"
        assert entry["job_id"] == "job-9"
        assert entry["stage"] == "poll"
        assert entry["attempt"] == 2

    def test_omits_unset_extra_fields(self) -> None:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "boom", None, None)
        entry = json.loads(StructuredJsonFormatter().format(record))
        assert entry["severity"] == "ERROR"
        assert "job_id" not in entry

    def test_setup_logging_replaces_structured_handler(self) -> None:
        root = logging.getLogger()
        original_handlers = list(root.handlers)
        original_level = root.level
        try:
            setup_logging(logging.DEBUG, stream=io.StringIO())
            stream = io.StringIO()
            setup_logging(logging.INFO, stream=stream)

            structured = [
                h
                for h in root.handlers
                if isinstance(h.formatter, StructuredJsonFormatter)
            ]
            assert len(structured) == 1
            assert root.level == logging.INFO
        finally:
            root.handlers[:] = original_handlers
            root.setLevel(original_level)
