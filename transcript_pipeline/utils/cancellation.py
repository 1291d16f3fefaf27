"""Cooperative cancellation for in-flight transcriptions.

A CancellationToken is checked before every remote call and every timed
wait. Its sleep() is an asyncio suspension that wakes early when the token
is cancelled, so backoff and poll delays never occupy a thread.
"""

import asyncio

from transcript_pipeline.utils.errors import PipelineCancelledError


class CancellationToken:
    """Caller-owned cancellation signal shared by one pipeline run."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Cancelled by caller") -> None:
        """Request cancellation. Idempotent; the first reason wins."""
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self, stage: str, job_id: str | None = None) -> None:
        """Raise PipelineCancelledError if cancellation was requested.

        Args:
            stage: Pipeline stage performing the check (for diagnostics).
            job_id: Remote job id, when one exists.

        Raises:
            PipelineCancelledError: If the token has been cancelled.
        """
        if self._event.is_set():
            raise PipelineCancelledError(
                f"{self.reason} during {stage}", job_id=job_id, stage=stage
            )

    async def sleep(
        self, seconds: float, stage: str, job_id: str | None = None
    ) -> None:
        """Suspend for `seconds`, waking early if cancelled.

        Raises:
            PipelineCancelledError: If cancelled before or during the wait.
        """
        self.raise_if_cancelled(stage, job_id)
        if seconds > 0:
            try:
                await asyncio.wait_for(self._event.wait(), timeout=seconds)
            except TimeoutError:
                return
        self.raise_if_cancelled(stage, job_id)
