"""
Worker entry point.

Adapts host invocations into executor calls:
- batch deliveries of queue records, answered with a partial batch failure
  list
- single direct or scheduled invocations, answered with a success result
"""

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import ValidationError

from jobqueue.constants import DIRECT_JOB_ID_PREFIX
from jobqueue.core.bootstrap import build_container, collect_modules, validate_no_cycles
from jobqueue.core.container import Container
from jobqueue.core.module import ModuleConfig
from jobqueue.errors import ConfigurationError, MessageParseError
from jobqueue.jobs.registry import JobRegistry, build_job_registry
from jobqueue.jobs.utils import generate_job_id
from jobqueue.observability.logging import setup_logging
from jobqueue.observability.metrics import get_metrics
from jobqueue.types.events import BatchResponse, QueueRecord
from jobqueue.types.job import JobExecution
from jobqueue.types.messages import JobEnvelope
from jobqueue.worker.executor import execute_job
from jobqueue.worker.hooks import WorkerHooks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkerState:
    """Container and registry shared read-only by every invocation."""

    container: Container
    registry: JobRegistry


class Worker:
    """
    Job worker bound to a root module.

    The container and job registry are built on first invocation and reused
    for the lifetime of the process. A failed build is not retried: every
    later invocation raises the same error.

    Features:
    - Per-record isolation in batch mode (one poison message never blocks
      the rest of the batch)
    - Direct invocation for periodic and scheduled triggers
    - Best-effort lifecycle hooks
    """

    def __init__(
        self,
        module: ModuleConfig,
        hooks: WorkerHooks | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ):
        """
        Initialize the worker.

        Args:
            module: Root module; its imports are collected recursively.
            hooks: Lifecycle observers.
            logger: Fallback logger for jobs when the container has none.
        """
        self.module = module
        self.hooks = hooks or WorkerHooks()
        self.logger = logger
        self._state_task: asyncio.Task[WorkerState] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def __call__(self, event: Mapping[str, Any], context: Any = None) -> dict[str, Any]:
        """
        Synchronous entry point for hosts that call plain functions.

        Runs on an event loop owned by the worker so that the memoized state
        stays usable across invocations.
        """
        if self._loop is None:
            self._loop = asyncio.new_event_loop()
        return self._loop.run_until_complete(self.handle(event, context))

    async def handle(self, event: Mapping[str, Any], context: Any = None) -> dict[str, Any]:
        """
        Handle one host invocation.

        Returns:
            ``{"batchItemFailures": [...]}`` for batch events, otherwise
            ``{"success": True}``.

        Raises:
            ConfigurationError: If the worker cannot be built or a direct
                invocation names no job.
            Exception: Whatever the executor rethrows in direct mode.
        """
        state = await self._get_state()

        if is_batch_event(event):
            return (await self.process_batch(event["Records"], state)).to_dict()

        await self.process_direct(event, context, state)
        return {"success": True}

    async def process_batch(self, records: list[Mapping[str, Any]], state: WorkerState) -> BatchResponse:
        """
        Process queue records one at a time, in delivery order.

        Any error escaping a record marks only that record as failed.
        """
        response = BatchResponse()

        for raw in records:
            message_id = str(raw.get("messageId", "")) if isinstance(raw, Mapping) else ""
            try:
                execution = parse_record(raw)
                await execute_job(execution, state.registry, state.container, self.hooks, self.logger)
            except Exception as e:
                logger.warning(
                    "Batch record failed",
                    extra={"message_id": message_id, "error": str(e), "error_type": type(e).__name__},
                )
                response.add_failure(message_id)

        if response.batch_item_failures:
            get_metrics().record_batch_item_failure(len(response.batch_item_failures))
            logger.info(
                "Batch processed with failures",
                extra={"records": len(records), "failed": len(response.batch_item_failures)},
            )

        return response

    async def process_direct(self, event: Mapping[str, Any], context: Any, state: WorkerState) -> None:
        """
        Process a single direct or scheduled invocation.

        Raises:
            ConfigurationError: If the event names no job.
        """
        job_name = extract_job_name(event)
        if not job_name:
            raise ConfigurationError("Job name is required for direct invocation")

        execution = JobExecution(
            job_id=f"{DIRECT_JOB_ID_PREFIX}{generate_job_id()}",
            job_name=job_name,
            payload=extract_payload(event),
            attempt_number=extract_attempt_number(context),
            enqueued_at=datetime.now(UTC),
        )

        await execute_job(execution, state.registry, state.container, self.hooks, self.logger)

    async def _get_state(self) -> WorkerState:
        if self._state_task is None:
            self._state_task = asyncio.ensure_future(self._build_state())
        return await asyncio.shield(self._state_task)

    async def _build_state(self) -> WorkerState:
        modules = collect_modules(self.module)
        validate_no_cycles(modules)

        container = await build_container(modules)
        registry = build_job_registry(modules)

        logger.info(
            "Worker bootstrapped",
            extra={"modules": len(modules), "jobs": len(registry)},
        )
        return WorkerState(container=container, registry=registry)


def bootstrap_worker(
    module: ModuleConfig,
    hooks: WorkerHooks | None = None,
    logger: structlog.stdlib.BoundLogger | None = None,
) -> Worker:
    """
    Configure logging and create a worker for ``module``.

    Example:
        handler = bootstrap_worker(AppModule, hooks=WorkerHooks.of(on_job_failed=report))
    """
    setup_logging()
    return Worker(module, hooks=hooks, logger=logger)


def is_batch_event(event: Any) -> bool:
    """
    Whether ``event`` is a batch of queue records.

    Checks the first record for queue-specific fields so other record-based
    events are not mistaken for queue deliveries.
    """
    if not isinstance(event, Mapping):
        return False
    records = event.get("Records")
    if not isinstance(records, list) or not records:
        return False
    first = records[0]
    return (
        isinstance(first, Mapping)
        and isinstance(first.get("messageId"), str)
        and isinstance(first.get("body"), str)
        and isinstance(first.get("receiptHandle"), str)
    )


def parse_record(raw: Mapping[str, Any]) -> JobExecution:
    """
    Turn a queue record into a job execution.

    Raises:
        MessageParseError: If the record or its body is malformed.
    """
    try:
        record = QueueRecord.model_validate(raw)
    except ValidationError as e:
        raise MessageParseError(
            "Invalid queue record",
            message_id=raw.get("messageId") if isinstance(raw, Mapping) else None,
            issues=e.errors(include_url=False),
        ) from e

    try:
        body = json.loads(record.body)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse job message body", extra={"message_id": record.message_id})
        raise MessageParseError("Job message body is not valid JSON", message_id=record.message_id) from e

    if not isinstance(body, dict):
        raise MessageParseError("Invalid job message payload", message_id=record.message_id)

    try:
        envelope = JobEnvelope.model_validate(body)
    except ValidationError as e:
        logger.error(
            "Invalid job message structure",
            extra={"message_id": record.message_id, "issues": e.errors(include_url=False)},
        )
        raise MessageParseError(
            "Invalid job message structure", message_id=record.message_id, issues=e.errors(include_url=False)
        ) from e

    return JobExecution(
        job_id=envelope.job_id or record.message_id,
        job_name=envelope.job_name,
        payload=envelope.payload,
        attempt_number=record.receive_count,
        enqueued_at=envelope.enqueued_at or datetime.now(UTC),
        metadata=envelope.metadata,
    )


def extract_job_name(event: Mapping[str, Any]) -> str | None:
    """Job name from the event itself or from a scheduled-trigger ``detail`` envelope."""
    if isinstance(event.get("jobName"), str):
        return event["jobName"]
    detail = event.get("detail")
    if isinstance(detail, Mapping):
        if isinstance(detail.get("jobName"), str):
            return detail["jobName"]
        if isinstance(detail.get("name"), str):
            return detail["name"]
    return None


def extract_payload(event: Mapping[str, Any]) -> Any:
    if "payload" in event:
        return event["payload"]
    detail = event.get("detail")
    if isinstance(detail, Mapping) and "payload" in detail:
        return detail["payload"]
    return None


def extract_attempt_number(context: Any) -> int:
    """
    Attempt number for a direct invocation.

    Only host retry metadata (``client_context.custom["retryAttempt"]``)
    raises it above 1; absence of metadata never implies a retry.
    """
    client_context = getattr(context, "client_context", None)
    custom = getattr(client_context, "custom", None)
    if not isinstance(custom, Mapping):
        return 1
    try:
        retry_attempt = int(custom["retryAttempt"])
    except (KeyError, TypeError, ValueError):
        return 1
    return max(1, retry_attempt + 1)
