"""
Job executor.

Runs one delivered job inside its own dependency scope and decides what
happens when the handler fails: retry, dead-letter, or discard.

Handlers must be idempotent. Delivery is at-least-once, so the same job may
be executed more than once.
"""

import inspect
import time
from dataclasses import dataclass
from typing import Any, assert_never

import structlog
from pydantic import ValidationError

from jobqueue.constants import SPAN_EXECUTE_JOB, ErrorKind, FailureDecision, JobOutcome
from jobqueue.core.container import Container, Scope, open_scope
from jobqueue.errors import InvalidJobPayloadError, RetriesExhaustedError, classify_error
from jobqueue.jobs.registry import JobRegistry
from jobqueue.jobs.retry import normalize_retry_config
from jobqueue.observability.logging import bound_context, get_logger
from jobqueue.observability.metrics import get_metrics
from jobqueue.observability.tracing import get_tracer, set_span_attributes
from jobqueue.types.job import JobContext, JobDefinition, JobExecution, RetryConfig
from jobqueue.worker.hooks import WorkerHooks, run_hooks

LOGGER_SERVICE = "logger"


@dataclass
class FailureResult:
    """Outcome of a failed handler, plus the error to rethrow (if any)."""

    outcome: JobOutcome
    error: BaseException | None = None


def decide_failure(kind: ErrorKind, attempt_number: int, retry_config: RetryConfig) -> FailureDecision:
    """
    Decide what to do with a failed handler invocation.

    First match wins:
    - permanent (or configuration) errors are dead-lettered immediately
    - with retries disabled the job is discarded
    - below the attempt limit the job is retried
    - at the limit the job is dead-lettered, or discarded if dead-lettering
      is off
    """
    match kind:
        case ErrorKind.PERMANENT | ErrorKind.CONFIGURATION:
            return FailureDecision.DEAD_LETTER
        case (
            ErrorKind.TRANSIENT
            | ErrorKind.INVALID_PAYLOAD
            | ErrorKind.RETRIES_EXHAUSTED
            | ErrorKind.PARSE
            | ErrorKind.UNCLASSIFIED
        ):
            pass
        case _:
            assert_never(kind)

    if retry_config.max_attempts is None:
        return FailureDecision.DISCARD
    if attempt_number < retry_config.max_attempts:
        return FailureDecision.RETRY
    if retry_config.dead_letter_on_exhaustion:
        return FailureDecision.EXHAUSTED
    return FailureDecision.EXHAUSTED_DISCARD


def validate_payload(job: JobDefinition, payload: Any) -> Any:
    """
    Validate a payload against the job's schema.

    Returns:
        The validated value, or the raw payload when no schema is declared.

    Raises:
        InvalidJobPayloadError: If validation fails.
    """
    adapter = job.payload_adapter
    if adapter is None:
        return payload
    try:
        return adapter.validate_python(payload)
    except ValidationError as e:
        raise InvalidJobPayloadError(job.name, e.errors(include_url=False)) from e


def resolve_job_logger(
    scope: Scope,
    execution: JobExecution,
    fallback: structlog.stdlib.BoundLogger | None = None,
) -> structlog.stdlib.BoundLogger:
    """
    Logger bound to this job.

    Prefers a ``logger`` service registered by the application, then the
    worker's logger, then the package logger.
    """
    if scope.container.has_registration(LOGGER_SERVICE):
        base = scope.resolve(LOGGER_SERVICE)
    else:
        base = fallback or get_logger("jobqueue.worker")
    bind = getattr(base, "bind", None)
    if bind is None:
        return base
    return bind(job_id=execution.job_id, job_name=execution.job_name)


async def execute_job(
    execution: JobExecution,
    registry: JobRegistry,
    container: Container,
    hooks: WorkerHooks | None = None,
    logger: structlog.stdlib.BoundLogger | None = None,
) -> JobOutcome:
    """
    Execute a single job.

    Handles the full lifecycle:
    1. Look up the job and normalize its retry policy
    2. Open a dependency scope (always disposed on exit)
    3. Run start hooks, validate the payload, invoke the handler
    4. Run complete hooks, or classify the failure

    Args:
        execution: The delivered job.
        registry: Job definitions by name.
        container: Container to open the job's scope from.
        hooks: Optional lifecycle observers.
        logger: Fallback logger when the container provides none.

    Returns:
        COMPLETED, or DISCARDED when a failure is deliberately dropped.

    Raises:
        JobNotFoundError: If the job name is not registered.
        RetriesExhaustedError: When attempts run out and dead-lettering is on.
        Exception: The handler's own error when it should be retried or is
            permanent.
    """
    job = registry.get_or_raise(execution.job_name)
    retry_config = normalize_retry_config(job.retry)
    hooks = hooks or WorkerHooks()
    started = time.monotonic()

    with (
        get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span,
        bound_context(
            job_id=execution.job_id,
            job_name=execution.job_name,
            attempt=execution.attempt_number,
        ),
    ):
        set_span_attributes(
            span,
            job_id=execution.job_id,
            job_name=execution.job_name,
            attempt=execution.attempt_number,
        )

        async with open_scope(container) as scope:
            job_logger = resolve_job_logger(scope, execution, logger)
            context = JobContext(
                services=scope.services,
                job_id=execution.job_id,
                attempt_number=execution.attempt_number,
                enqueued_at=execution.enqueued_at,
                logger=job_logger,
            )

            try:
                await run_hooks("on_job_start", hooks.on_job_start, execution, context)
                payload = validate_payload(job, execution.payload)
                result = job.handler(payload, context)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                failure = await handle_job_error(
                    exc, execution, context, hooks, retry_config, job_logger
                )
                _record(span, execution, failure.outcome, started)
                if failure.error is exc:
                    raise
                if failure.error is not None:
                    raise failure.error from exc
                return failure.outcome

            await run_hooks("on_job_complete", hooks.on_job_complete, execution, context)
            job_logger.info("Job completed", attempt_number=execution.attempt_number)
            _record(span, execution, JobOutcome.COMPLETED, started)
            return JobOutcome.COMPLETED


async def handle_job_error(
    exc: Exception,
    execution: JobExecution,
    context: JobContext,
    hooks: WorkerHooks,
    retry_config: RetryConfig,
    job_logger: structlog.stdlib.BoundLogger,
) -> FailureResult:
    """
    Apply the failure decision: run hooks, log, and choose what to rethrow.

    Failed and dead-letter hooks always receive the original error. On
    exhaustion a ``RetriesExhaustedError`` wrapping it is what gets rethrown.
    """
    decision = decide_failure(classify_error(exc), execution.attempt_number, retry_config)
    max_attempts = retry_config.max_attempts

    match decision:
        case FailureDecision.DEAD_LETTER:
            job_logger.error("Job permanently failed", exc_info=exc)
            await run_hooks("on_job_failed", hooks.on_job_failed, execution, context, exc)
            await run_hooks("on_job_dead_letter", hooks.on_job_dead_letter, execution, context, exc)
            return FailureResult(JobOutcome.DEAD_LETTER, exc)

        case FailureDecision.DISCARD:
            job_logger.warning("Job failed with retries disabled, discarding", exc_info=exc)
            await run_hooks("on_job_failed", hooks.on_job_failed, execution, context, exc)
            return FailureResult(JobOutcome.DISCARDED)

        case FailureDecision.RETRY:
            await run_hooks("on_job_failed", hooks.on_job_failed, execution, context, exc)
            log_retryable_error(exc, execution, max_attempts, job_logger)
            return FailureResult(JobOutcome.RETRY, exc)

        case FailureDecision.EXHAUSTED | FailureDecision.EXHAUSTED_DISCARD:
            exhausted = RetriesExhaustedError(
                execution.job_name, execution.attempt_number, max_attempts, exc
            )
            job_logger.error(
                "Job retries exhausted",
                attempt_number=execution.attempt_number,
                max_attempts=max_attempts,
                cause=str(exc),
                exc_info=exc,
            )
            await run_hooks("on_job_failed", hooks.on_job_failed, execution, context, exc)
            await run_hooks("on_job_dead_letter", hooks.on_job_dead_letter, execution, context, exc)

            if decision is FailureDecision.EXHAUSTED_DISCARD:
                job_logger.info("Job discarded (dead-lettering disabled)")
                return FailureResult(JobOutcome.DISCARDED)
            return FailureResult(JobOutcome.DEAD_LETTER, exhausted)

        case _:
            assert_never(decision)


def log_retryable_error(
    exc: Exception,
    execution: JobExecution,
    max_attempts: int | None,
    job_logger: structlog.stdlib.BoundLogger,
) -> None:
    """Log a failure that will be redelivered."""
    match classify_error(exc):
        case ErrorKind.INVALID_PAYLOAD:
            job_logger.warning(
                "Invalid job payload, retrying until DLQ",
                issues=getattr(exc, "issues", None),
                attempt_number=execution.attempt_number,
                max_attempts=max_attempts,
            )
        case ErrorKind.TRANSIENT:
            retry_after = getattr(exc, "retry_after", None)
            job_logger.warning(
                "Job transient failure, retrying",
                retry_after=str(retry_after) if retry_after is not None else None,
                attempt_number=execution.attempt_number,
                max_attempts=max_attempts,
                exc_info=exc,
            )
        case _:
            job_logger.warning(
                "Job failed, will retry",
                attempt_number=execution.attempt_number,
                max_attempts=max_attempts,
                remaining_attempts=max_attempts - execution.attempt_number if max_attempts else None,
                exc_info=exc,
            )


def _record(span: Any, execution: JobExecution, outcome: JobOutcome, started: float) -> None:
    set_span_attributes(span, outcome=outcome)
    get_metrics().record_job_processed(execution.job_name, outcome, time.monotonic() - started)
