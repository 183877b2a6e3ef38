"""
AWS SQS queue driver.

Sends jobs immediately, with the queue's native delay, or hands them to the
scheduler driver when the delay exceeds the native cap.
"""

import asyncio
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import boto3

from jobqueue.config import Settings, get_settings
from jobqueue.constants import (
    DEFAULT_QUEUE_NAME,
    FIFO_QUEUE_SUFFIX,
    JOB_NAME_MESSAGE_ATTRIBUTE,
    MAX_NATIVE_DELAY_SECONDS,
    SPAN_ENQUEUE_JOB,
    EnqueueRoute,
)
from jobqueue.drivers.base import LazyClient
from jobqueue.drivers.scheduler import EventBridgeSchedulerDriver
from jobqueue.errors import JobQueueError, QueueNotConfiguredError, SchedulerNotConfiguredError
from jobqueue.jobs.utils import duration_to_seconds, generate_job_id
from jobqueue.observability.metrics import get_metrics
from jobqueue.observability.tracing import get_tracer, set_span_attributes
from jobqueue.types.messages import EnqueueResult, JobEnvelope, JobMessage, ScheduleResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SQSDriverConfig:
    """Configuration for the SQS driver."""

    region: str
    # Queue name -> queue URL
    queues: dict[str, str] = field(default_factory=dict)
    default_queue: str | None = None
    endpoint: str | None = None
    max_native_delay_seconds: int = MAX_NATIVE_DELAY_SECONDS


class SQSQueueDriver:
    """
    SQS queue driver.

    Delays up to ``max_native_delay_seconds`` use ``DelaySeconds``; longer
    delays go through the scheduler driver, which must be configured.
    """

    name = "sqs"

    def __init__(
        self,
        config: SQSDriverConfig,
        scheduler: EventBridgeSchedulerDriver | None = None,
        client_factory: Callable[[], Any] | None = None,
    ):
        self.config = config
        self.scheduler = scheduler
        self._client = LazyClient(client_factory or self._create_client, owner=self.name)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "SQSQueueDriver":
        """Build a driver (and its scheduler, when a role is configured) from settings."""
        settings = settings or get_settings()
        scheduler = None
        if settings.scheduler_role_arn:
            scheduler = EventBridgeSchedulerDriver.from_settings(settings)
        return cls(
            SQSDriverConfig(
                region=settings.aws_region,
                queues=dict(settings.sqs_queues),
                default_queue=settings.sqs_default_queue,
                endpoint=settings.aws_endpoint_url,
                max_native_delay_seconds=settings.max_native_delay_seconds,
            ),
            scheduler=scheduler,
        )

    @property
    def default_queue(self) -> str | None:
        return self.config.default_queue

    def _create_client(self) -> Any:
        return boto3.client(
            "sqs",
            region_name=self.config.region,
            endpoint_url=self.config.endpoint,
        )

    async def enqueue(self, message: JobMessage) -> EnqueueResult:
        """Enqueue a job for immediate processing."""
        return await self._send(message, delay_seconds=None)

    async def enqueue_at(self, message: JobMessage, at: datetime) -> EnqueueResult:
        """
        Enqueue a job for processing at ``at``.

        Instants in the past (or now) are sent immediately.
        """
        if at.tzinfo is None:
            at = at.replace(tzinfo=UTC)
        delay_seconds = math.floor((at - datetime.now(UTC)).total_seconds())
        if delay_seconds <= 0:
            return await self.enqueue(message)
        if delay_seconds <= self.config.max_native_delay_seconds:
            return await self._send(message, delay_seconds=delay_seconds)
        return await self._schedule(message, at)

    async def enqueue_in(self, message: JobMessage, delay: float | str | timedelta) -> EnqueueResult:
        """Enqueue a job for processing after ``delay``."""
        delay_seconds = duration_to_seconds(delay)
        if delay_seconds <= 0:
            return await self.enqueue(message)
        if delay_seconds <= self.config.max_native_delay_seconds:
            return await self._send(message, delay_seconds=delay_seconds)
        at = datetime.now(UTC) + timedelta(seconds=delay_seconds)
        return await self._schedule(message, at)

    async def cancel_schedule(self, schedule_name: str) -> None:
        """
        Cancel a job that was routed through the scheduler.

        Raises:
            SchedulerNotConfiguredError: If the driver has no scheduler.
        """
        self._client.ensure_usable()
        if self.scheduler is None:
            raise SchedulerNotConfiguredError("A scheduler driver is required to cancel schedules")
        await self.scheduler.cancel(schedule_name)

    async def dispose(self) -> None:
        """Release the client and the scheduler. The driver cannot be used afterwards."""
        self._client.dispose()
        if self.scheduler is not None:
            await self.scheduler.dispose()

    def get_queue_url(self, queue: str | None = None) -> str:
        """
        Resolve a queue name to its URL.

        Raises:
            QueueNotConfiguredError: If the name has no configured URL.
        """
        queue_name = queue or self.config.default_queue or DEFAULT_QUEUE_NAME
        queue_url = self.config.queues.get(queue_name)
        if not queue_url:
            raise QueueNotConfiguredError(queue_name)
        return queue_url

    async def _send(self, message: JobMessage, delay_seconds: float | None) -> EnqueueResult:
        self._client.ensure_usable()
        queue_url = self.get_queue_url(message.queue)
        job_id = message.job_id or generate_job_id()

        params: dict[str, Any] = {
            "QueueUrl": queue_url,
            "MessageBody": JobEnvelope.from_message(message, job_id).to_body(),
            "MessageAttributes": {
                JOB_NAME_MESSAGE_ATTRIBUTE: {"DataType": "String", "StringValue": message.job_name},
            },
        }
        if delay_seconds is not None:
            params["DelaySeconds"] = min(
                self.config.max_native_delay_seconds, max(0, math.floor(delay_seconds))
            )
        if queue_url.endswith(FIFO_QUEUE_SUFFIX):
            params["MessageGroupId"] = message.queue or message.job_name
            params["MessageDeduplicationId"] = job_id

        client = self._client.get()
        with get_tracer().start_as_current_span(SPAN_ENQUEUE_JOB) as span:
            set_span_attributes(
                span,
                job_id=job_id,
                job_name=message.job_name,
                queue_url=queue_url,
                delay_seconds=params.get("DelaySeconds"),
            )
            response = await asyncio.to_thread(client.send_message, **params)

        message_id = response.get("MessageId")
        if not message_id:
            raise JobQueueError("SQS did not return a message ID")

        route = EnqueueRoute.IMMEDIATE if delay_seconds is None else EnqueueRoute.DELAYED
        get_metrics().record_job_enqueued(message.job_name, route)
        logger.info(
            "Job enqueued",
            extra={
                "job_id": job_id,
                "job_name": message.job_name,
                "message_id": message_id,
                "delay_seconds": params.get("DelaySeconds"),
            },
        )

        return EnqueueResult(message_id=message_id, job_id=job_id)

    async def _schedule(self, message: JobMessage, at: datetime) -> ScheduleResult:
        self._client.ensure_usable()
        if self.scheduler is None:
            raise SchedulerNotConfiguredError(
                f"A scheduler driver is required for delays over "
                f"{self.config.max_native_delay_seconds} seconds"
            )
        queue_url = self.get_queue_url(message.queue)
        result = await self.scheduler.schedule_at(queue_url, message, at)
        get_metrics().record_job_enqueued(message.job_name, EnqueueRoute.SCHEDULED)
        return result
