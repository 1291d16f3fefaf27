"""Retry utility with full-jitter exponential backoff.

Operations report each attempt as an explicit tagged outcome (Success,
TransientFailure or NonRetryableFailure) instead of relying on exception
types to steer retry behavior. Exceptions that still escape an operation
are classified once by classify_exception().
"""

from __future__ import annotations

import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

import httpx

from transcript_pipeline.utils.cancellation import CancellationToken
from transcript_pipeline.utils.errors import (
    PipelineCancelledError,
    PipelineError,
    UpstreamTransientError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AttemptOutcome(str, Enum):
    """Classification of a single attempt."""

    SUCCESS = "success"
    TRANSIENT_FAILURE = "transient_failure"
    NON_RETRYABLE_FAILURE = "non_retryable_failure"


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True)
class TransientFailure:
    error: Exception


@dataclass(frozen=True)
class NonRetryableFailure:
    error: Exception


AttemptResult = Success[Any] | TransientFailure | NonRetryableFailure


@dataclass
class AttemptRecord:
    """One entry of a retried operation's attempt history."""

    index: int
    outcome: AttemptOutcome
    delay_before_ms: float = 0.0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "outcome": self.outcome.value,
            "delay_before_ms": round(self.delay_before_ms, 1),
            "error": self.error,
        }


@dataclass
class RetryState:
    """Mutable bookkeeping for one retried operation; discarded afterwards."""

    attempt: int = 0
    last_error: Exception | None = None
    cumulative_delay_ms: float = 0.0


@dataclass
class RetryResult(Generic[T]):
    """Value produced by a successful retried operation plus its history."""

    result: T
    attempts: int
    log: list[str] = field(default_factory=list)
    history: list[AttemptRecord] = field(default_factory=list)


def is_transient_status(status_code: int) -> bool:
    """Return True for HTTP statuses worth retrying (408 and 5xx)."""
    return status_code == 408 or status_code >= 500


def classify_exception(exc: Exception) -> TransientFailure | NonRetryableFailure:
    """Classify an exception raised by an attempt.

    Network-level failures and request timeouts are transient. Anything
    else (logic errors, client errors, malformed payloads) is not.
    """
    if isinstance(exc, httpx.TransportError):
        return TransientFailure(exc)
    if isinstance(exc, UpstreamTransientError):
        return TransientFailure(exc)
    return NonRetryableFailure(exc)


def full_jitter_delay(
    attempt: int, base_delay_ms: float, rng: random.Random | None = None
) -> float:
    """Delay in milliseconds before retrying after failed attempt `attempt`.

    Drawn uniformly from [base_delay_ms, base_delay_ms * 2^(attempt - 1)].
    """
    upper = base_delay_ms * (2 ** (attempt - 1))
    return (rng or random).uniform(base_delay_ms, upper)


def _note(
    log: list[str], level: int, name: str, attempt: int, msg: str, *args: Any
) -> None:
    text = msg % args if args else msg
    log.append(text)
    logger.log(level, text, extra={"stage": name, "attempt": attempt})


async def retry_async(
    operation: Callable[[], Awaitable[AttemptResult]],
    max_attempts: int,
    base_delay_ms: float,
    *,
    name: str = "operation",
    cancel: CancellationToken | None = None,
    rng: random.Random | None = None,
) -> RetryResult[Any]:
    """Run `operation` until it succeeds, fails permanently or runs out of attempts.

    Args:
        operation: Zero-argument coroutine function returning an AttemptResult.
        max_attempts: Total attempts allowed, including the first (>= 1).
        base_delay_ms: Base backoff delay in milliseconds.
        name: Operation name used in log lines.
        cancel: Optional cancellation token observed before every attempt
            and during every backoff wait.
        rng: Optional random source for jitter (tests pass a seeded one).

    Returns:
        RetryResult with the operation's value, attempts used, ordered log
        lines and per-attempt history.

    Raises:
        PipelineCancelledError: If cancelled before an attempt or while waiting.
        UpstreamTransientError: If every attempt failed transiently. The last
            attempt error is chained as __cause__; last_error holds the error
            it wraps, such as the httpx exception behind a network failure.
        Exception: The error of a non-retryable attempt, unchanged apart from
            the attempts/log annotations on PipelineError instances.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    cancel = cancel or CancellationToken()
    state = RetryState()
    log: list[str] = []
    history: list[AttemptRecord] = []
    delay_before = 0.0

    for attempt in range(1, max_attempts + 1):
        state.attempt = attempt
        cancel.raise_if_cancelled(name)
        _note(
            log,
            logging.INFO,
            name,
            attempt,
            "Attempt %d/%d for %s: starting",
            attempt,
            max_attempts,
            name,
        )

        try:
            outcome = await operation()
        except PipelineCancelledError:
            raise
        except Exception as exc:
            outcome = classify_exception(exc)

        if isinstance(outcome, Success):
            history.append(
                AttemptRecord(attempt, AttemptOutcome.SUCCESS, delay_before)
            )
            _note(
                log,
                logging.INFO,
                name,
                attempt,
                "Attempt %d/%d for %s: succeeded",
                attempt,
                max_attempts,
                name,
            )
            return RetryResult(outcome.value, attempt, log, history)

        state.last_error = outcome.error

        if isinstance(outcome, NonRetryableFailure):
            history.append(
                AttemptRecord(
                    attempt,
                    AttemptOutcome.NON_RETRYABLE_FAILURE,
                    delay_before,
                    str(outcome.error),
                )
            )
            _note(
                log,
                logging.ERROR,
                name,
                attempt,
                "Attempt %d/%d for %s: failed with non-retryable error: %s. "
                "Aborting.",
                attempt,
                max_attempts,
                name,
                outcome.error,
            )
            if isinstance(outcome.error, PipelineError):
                outcome.error.attempts = attempt
                outcome.error.log = log
                outcome.error.history = history
            raise outcome.error

        history.append(
            AttemptRecord(
                attempt,
                AttemptOutcome.TRANSIENT_FAILURE,
                delay_before,
                str(outcome.error),
            )
        )

        if attempt == max_attempts:
            _note(
                log,
                logging.ERROR,
                name,
                attempt,
                "Attempt %d/%d for %s: failed with transient error: %s. "
                "No more retries.",
                attempt,
                max_attempts,
                name,
                outcome.error,
            )
            break

        delay_ms = full_jitter_delay(attempt, base_delay_ms, rng)
        state.cumulative_delay_ms += delay_ms
        delay_before = delay_ms
        _note(
            log,
            logging.WARNING,
            name,
            attempt,
            "Attempt %d/%d for %s: failed with transient error: %s. "
            "Retrying in %.0f ms",
            attempt,
            max_attempts,
            name,
            outcome.error,
            delay_ms,
        )
        await cancel.sleep(delay_ms / 1000, stage=name)

    # Exhausted all attempts; report the underlying cause, not its wrapper
    cause = state.last_error
    if isinstance(cause, UpstreamTransientError) and cause.last_error is not None:
        cause = cause.last_error
    error = UpstreamTransientError(
        f"{name} failed after {state.attempt} attempt(s): {state.last_error}",
        status_code=getattr(state.last_error, "status_code", None),
        last_error=cause,
    )
    error.attempts = state.attempt
    error.log = log
    error.history = history
    logger.error(
        "%s exhausted retries after %.0f ms of backoff",
        name,
        state.cumulative_delay_ms,
        extra={"stage": name, "attempt": state.attempt},
    )
    raise error from state.last_error
