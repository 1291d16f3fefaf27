"""Remote transcription pipeline: upload, job, poll, normalize."""

from transcript_pipeline.asr.interface import NormalizedTranscript, TranscriptionResult
from transcript_pipeline.config import PipelineConfig
from transcript_pipeline.pipeline import TranscriptionPipeline, transcribe_audio
from transcript_pipeline.utils.cancellation import CancellationToken

__all__ = [
    "CancellationToken",
    "NormalizedTranscript",
    "PipelineConfig",
    "TranscriptionPipeline",
    "TranscriptionResult",
    "transcribe_audio",
]
