"""Console entry point for the transcription pipeline.

Runs one transcription and prints the result as JSON (or rendered text) on
stdout. Logs and metrics go to stderr. SIGINT/SIGTERM cancel the run
cooperatively.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

import typer

from transcript_pipeline.asr.interface import TranscriptionResult
from transcript_pipeline.asr.postprocess import render_transcript
from transcript_pipeline.config import PipelineConfig
from transcript_pipeline.observability.logger import setup_logging
from transcript_pipeline.pipeline import TranscriptionPipeline
from transcript_pipeline.utils.cancellation import CancellationToken
from transcript_pipeline.utils.errors import InvalidInputError, PipelineError

logger = logging.getLogger(__name__)

EXIT_CODES: dict[str, int] = {
    "invalid_input": 2,
    "upstream_client_error": 3,
    "malformed_response": 3,
    "upstream_transient_error": 4,
    "job_error": 5,
    "timed_out": 6,
    "cancelled": 130,
}


async def _run(
    pipeline: TranscriptionPipeline,
    audio_file: Path | None,
    audio_url: str | None,
    cancel: CancellationToken,
) -> TranscriptionResult:
    """Run one transcription, translating signals into cancellation."""
    if not audio_url and audio_file is None:
        raise InvalidInputError("No audio file or URL provided")

    loop = asyncio.get_running_loop()

    def _shutdown() -> None:
        logger.info("Received shutdown signal")
        cancel.cancel("Interrupted by signal")

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, _shutdown)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform/thread
            pass

    if audio_url:
        return await pipeline.transcribe_url(audio_url, cancel)
    with audio_file.open("rb") as stream:
        return await pipeline.transcribe(stream, cancel)


def create_cli_app() -> typer.Typer:
    """Create the Typer CLI app."""

    app = typer.Typer(
        add_completion=False,
        help="Transcribe audio through a remote transcription service.",
        no_args_is_help=True,
    )

    @app.callback()
    def root() -> None:
        """Remote transcription pipeline."""

    @app.command("run")
    def run(
        audio_file: Optional[Path] = typer.Argument(
            None,
            exists=True,
            readable=True,
            dir_okay=False,
            help="Path to the audio file to upload.",
        ),
        audio_url: Optional[str] = typer.Option(
            None,
            "--audio-url",
            help="Transcribe audio already hosted at this URL (skips the upload).",
        ),
        text: bool = typer.Option(
            False,
            "--text",
            help="Print a readable transcript instead of JSON.",
        ),
        precise: bool = typer.Option(
            False,
            "--precise",
            help="Render sentence timestamps as MM:SS.mmm in JSON output.",
        ),
        verbose: bool = typer.Option(
            False,
            "--verbose",
            help="Enable debug logging.",
        ),
    ) -> None:
        """Transcribe one audio file (or URL) and print the result."""

        setup_logging(logging.DEBUG if verbose else logging.INFO, stream=sys.stderr)

        if audio_file is None and not audio_url:
            typer.secho(
                "Provide an audio file or --audio-url.", fg=typer.colors.RED, err=True
            )
            raise typer.Exit(code=2)

        try:
            config = PipelineConfig.from_env()
        except ValueError as exc:
            typer.secho(f"Config error: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=2) from exc

        pipeline = TranscriptionPipeline(config, metrics_stream=sys.stderr)
        cancel = CancellationToken()

        try:
            result = asyncio.run(_run(pipeline, audio_file, audio_url, cancel))
        except PipelineError as exc:
            typer.secho(f"Error ({exc.kind}): {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=EXIT_CODES.get(exc.kind, 1)) from exc

        if text:
            typer.echo(render_transcript(result.transcript))
        else:
            typer.echo(json.dumps(result.to_dict(precise=precise), indent=2))

    return app


def main() -> None:
    """Run the transcription CLI."""
    app = create_cli_app()
    app()


if __name__ == "__main__":
    main()
