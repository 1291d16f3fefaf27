"""Transcription metrics collection and reporting.

Provides the TranscriptionMetrics dataclass, the StageTimer context manager
for measuring pipeline stage durations, and log_transcription_metrics() for
emitting one structured JSON line per transcription.
"""

from __future__ import annotations

import json
import sys
import time
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import TextIO


@dataclass
class TranscriptionMetrics:
    """Metrics collected for a single transcription run."""

    status: str
    job_id: str | None = None
    audio_size_bytes: int = 0
    upload_attempts: int = 0
    poll_count: int = 0
    payload_shape: str | None = None
    sentence_count: int = 0
    word_count: int = 0
    wall_time_seconds: float = 0.0
    stage_timings: dict[str, float] = field(default_factory=dict)
    error_kind: str | None = None
    error_message: str | None = None


class StageTimer:
    """Context manager that records wall-clock duration of a pipeline stage.

    When given a `timings` dict, the duration is stored under the stage
    name on success, or under `_{stage}_failed` when the block raises.

    Usage:
        timer = StageTimer("upload", timings)
        with timer:
            await do_work()
        print(timer.duration_seconds)
    """

    def __init__(self, stage_name: str, timings: dict[str, float] | None = None) -> None:
        self.stage_name = stage_name
        self.start_time: datetime | None = None
        self.end_time: datetime | None = None
        self.duration_seconds: float = 0.0
        self._timings = timings
        self._mono_start: float = 0.0

    def __enter__(self) -> StageTimer:
        self.start_time = datetime.now(UTC)
        self._mono_start = time.monotonic()
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.duration_seconds = time.monotonic() - self._mono_start
        self.end_time = datetime.now(UTC)
        if self._timings is not None:
            key = self.stage_name if exc_type is None else f"_{self.stage_name}_failed"
            self._timings[key] = self.duration_seconds


def log_transcription_metrics(
    metrics: TranscriptionMetrics, stream: TextIO | None = None
) -> None:
    """Emit transcription metrics as a single structured JSON line.

    The JSON envelope includes timestamp, severity and metric_type fields;
    all TranscriptionMetrics fields are spread into the top level.

    Args:
        metrics: Populated TranscriptionMetrics dataclass.
        stream: Output stream (default stdout).
    """
    entry = {
        "timestamp": datetime.now(UTC).isoformat(),
        "severity": "INFO" if metrics.status == "completed" else "WARNING",
        "metric_type": "transcription_completion",
        **asdict(metrics),
    }
    print(json.dumps(entry), file=stream or sys.stdout)
