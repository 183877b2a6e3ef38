"""
Producer-side job service.

Validates payloads against job definitions before handing them to a queue
driver.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import ValidationError

from jobqueue.config import get_settings
from jobqueue.constants import DEFAULT_QUEUE_NAME
from jobqueue.drivers.base import QueueDriver
from jobqueue.errors import ConfigurationError, InvalidJobPayloadError, PayloadTooLargeError
from jobqueue.jobs.utils import duration_to_seconds, payload_size_bytes
from jobqueue.types.job import JobDefinition
from jobqueue.types.messages import EnqueueResult, JobMessage

logger = logging.getLogger(__name__)

EnqueuedHook = Callable[[JobDefinition, Any, EnqueueResult], Awaitable[None] | None]


class JobService:
    """
    Service responsible for enqueuing jobs.

    Example:
        service = JobService(SQSQueueDriver.from_settings())
        await service.enqueue(send_email_job, {"to": "a@example.com"})
        await service.enqueue_in(send_email_job, {"to": "b@example.com"}, "2h")
    """

    def __init__(
        self,
        driver: QueueDriver,
        default_queue: str | None = None,
        max_payload_bytes: int | None = None,
        on_enqueued: EnqueuedHook | None = None,
    ):
        self.driver = driver
        self.default_queue = default_queue or driver.default_queue or DEFAULT_QUEUE_NAME
        self.max_payload_bytes = max_payload_bytes or get_settings().max_payload_bytes
        self._on_enqueued = on_enqueued

    async def enqueue(self, job: JobDefinition, payload: Any = None) -> EnqueueResult:
        """Enqueue a job for immediate processing."""
        message = self._build_message(job, payload)
        result = await self.driver.enqueue(message)
        await self._notify(job, payload, result)
        return result

    async def enqueue_in(
        self,
        job: JobDefinition,
        payload: Any,
        delay: float | str | timedelta,
    ) -> EnqueueResult:
        """Enqueue a job to run after ``delay``."""
        message = self._build_message(job, payload)

        enqueue_in = getattr(self.driver, "enqueue_in", None)
        if enqueue_in is not None:
            result = await enqueue_in(message, delay)
        else:
            at = datetime.now(UTC) + timedelta(seconds=duration_to_seconds(delay))
            result = await self._require(self.driver, "enqueue_at")(message, at)

        await self._notify(job, payload, result)
        return result

    async def enqueue_at(self, job: JobDefinition, payload: Any, at: datetime) -> EnqueueResult:
        """Enqueue a job to run at ``at``."""
        message = self._build_message(job, payload)

        enqueue_at = getattr(self.driver, "enqueue_at", None)
        if enqueue_at is not None:
            result = await enqueue_at(message, at)
        else:
            if at.tzinfo is None:
                at = at.replace(tzinfo=UTC)
            delay = max(0.0, (at - datetime.now(UTC)).total_seconds())
            result = await self._require(self.driver, "enqueue_in")(message, delay)

        await self._notify(job, payload, result)
        return result

    async def enqueue_batch(self, items: Iterable[tuple[JobDefinition, Any]]) -> list[EnqueueResult]:
        """Enqueue several jobs in order."""
        return [await self.enqueue(job, payload) for job, payload in items]

    def _build_message(self, job: JobDefinition, payload: Any) -> JobMessage:
        self._validate_payload(job, payload)
        self._validate_payload_size(payload)
        return JobMessage(
            job_name=job.name,
            payload=payload,
            queue=job.queue or self.default_queue,
            job_id=job.unique.key(payload) if job.unique else None,
        )

    def _validate_payload(self, job: JobDefinition, payload: Any) -> None:
        adapter = job.payload_adapter
        if adapter is None:
            return
        try:
            adapter.validate_python(payload)
        except ValidationError as e:
            raise InvalidJobPayloadError(job.name, e.errors(include_url=False)) from e

    def _validate_payload_size(self, payload: Any) -> None:
        size = payload_size_bytes(payload)
        if size > self.max_payload_bytes:
            raise PayloadTooLargeError(size, self.max_payload_bytes)

    async def _notify(self, job: JobDefinition, payload: Any, result: EnqueueResult) -> None:
        if self._on_enqueued is None:
            return
        try:
            outcome = self._on_enqueued(job, payload, result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            logger.exception("on_enqueued hook failed", extra={"job_name": job.name})

    @staticmethod
    def _require(driver: QueueDriver, method: str) -> Callable[..., Awaitable[EnqueueResult]]:
        func = getattr(driver, method, None)
        if func is None:
            raise ConfigurationError(f'Queue driver "{driver.name}" does not support delayed enqueue')
        return func
