"""
EventBridge Scheduler driver.

Realizes delays beyond the queue's native cap with one-off schedules that
deliver the job envelope to the queue and then delete themselves.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlparse

import boto3

from jobqueue.config import Settings, get_settings
from jobqueue.constants import (
    DEFAULT_SCHEDULE_GROUP,
    DEFAULT_SCHEDULE_PREFIX,
    FIFO_QUEUE_SUFFIX,
    SPAN_SCHEDULE_JOB,
)
from jobqueue.drivers.base import LazyClient
from jobqueue.errors import ConfigurationError, JobQueueError
from jobqueue.jobs.utils import generate_job_id
from jobqueue.observability.tracing import get_tracer, set_span_attributes
from jobqueue.types.messages import JobEnvelope, JobMessage, ScheduleResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventBridgeSchedulerConfig:
    """Configuration for the scheduler driver."""

    region: str
    # Role EventBridge Scheduler assumes to send to the queue
    role_arn: str
    group_name: str = DEFAULT_SCHEDULE_GROUP
    name_prefix: str = DEFAULT_SCHEDULE_PREFIX
    endpoint: str | None = None


class EventBridgeSchedulerDriver:
    """
    Schedules jobs for delivery at an arbitrary future instant.

    Uses one-off ``at()`` schedules targeting a queue. The scheduling service
    deletes each schedule after it fires, so only cancellation needs an
    explicit call.
    """

    def __init__(
        self,
        config: EventBridgeSchedulerConfig,
        client_factory: Callable[[], Any] | None = None,
    ):
        self.config = config
        self._client = LazyClient(client_factory or self._create_client, owner="scheduler")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "EventBridgeSchedulerDriver":
        """
        Build a driver from application settings.

        Raises:
            ConfigurationError: If no scheduler role is configured.
        """
        settings = settings or get_settings()
        if not settings.scheduler_role_arn:
            raise ConfigurationError("scheduler_role_arn is required for the scheduler driver")
        return cls(
            EventBridgeSchedulerConfig(
                region=settings.aws_region,
                role_arn=settings.scheduler_role_arn,
                group_name=settings.scheduler_group_name,
                name_prefix=settings.scheduler_name_prefix,
                endpoint=settings.aws_endpoint_url,
            )
        )

    def _create_client(self) -> Any:
        return boto3.client(
            "scheduler",
            region_name=self.config.region,
            endpoint_url=self.config.endpoint,
        )

    async def schedule_at(self, queue_url: str, message: JobMessage, at: datetime) -> ScheduleResult:
        """
        Schedule a job to be delivered to ``queue_url`` at ``at``.

        Args:
            queue_url: Destination queue URL.
            message: The job message.
            at: Delivery instant. Naive datetimes are taken as UTC.

        Returns:
            ScheduleResult with the schedule ARN and name.
        """
        self._client.ensure_usable()
        target_arn = self.sqs_arn_from_url(queue_url)

        job_id = message.job_id or generate_job_id()
        schedule_name = f"{self.config.name_prefix}-{job_id}"
        envelope = JobEnvelope.from_message(message, job_id)

        target: dict[str, Any] = {
            "Arn": target_arn,
            "RoleArn": self.config.role_arn,
            "Input": envelope.to_body(),
        }
        if queue_url.endswith(FIFO_QUEUE_SUFFIX):
            target["SqsParameters"] = {"MessageGroupId": message.queue or message.job_name}

        params = {
            "Name": schedule_name,
            "GroupName": self.config.group_name,
            "ScheduleExpression": self.schedule_expression(at),
            "ScheduleExpressionTimezone": "UTC",
            "FlexibleTimeWindow": {"Mode": "OFF"},
            "Target": target,
            "ActionAfterCompletion": "DELETE",
        }

        client = self._client.get()
        with get_tracer().start_as_current_span(SPAN_SCHEDULE_JOB) as span:
            set_span_attributes(span, job_id=job_id, job_name=message.job_name, schedule_name=schedule_name)
            response = await asyncio.to_thread(client.create_schedule, **params)

        schedule_arn = response.get("ScheduleArn")
        if not schedule_arn:
            raise JobQueueError("EventBridge Scheduler did not return a schedule ARN")

        logger.info(
            "Job scheduled",
            extra={
                "job_id": job_id,
                "job_name": message.job_name,
                "schedule_name": schedule_name,
                "scheduled_at": at.isoformat(),
            },
        )

        return ScheduleResult(
            message_id=job_id,
            job_id=job_id,
            schedule_arn=schedule_arn,
            schedule_name=schedule_name,
        )

    async def cancel(self, schedule_name: str) -> None:
        """
        Cancel a pending schedule before it fires.

        Args:
            schedule_name: Name returned in ``ScheduleResult.schedule_name``.
        """
        client = self._client.get()
        await asyncio.to_thread(
            client.delete_schedule,
            Name=schedule_name,
            GroupName=self.config.group_name,
        )
        logger.info("Schedule cancelled", extra={"schedule_name": schedule_name})

    async def dispose(self) -> None:
        """Release the client. The driver cannot be used afterwards."""
        self._client.dispose()

    @staticmethod
    def schedule_expression(at: datetime) -> str:
        """Format an instant as a one-off ``at(yyyy-mm-ddThh:mm:ss)`` expression in UTC."""
        if at.tzinfo is None:
            at = at.replace(tzinfo=UTC)
        return f"at({at.astimezone(UTC).strftime('%Y-%m-%dT%H:%M:%S')})"

    def sqs_arn_from_url(self, queue_url: str) -> str:
        """
        Convert a queue URL to its ARN.

        Supports both URL forms:
        - AWS: ``https://sqs.{region}.amazonaws.com/{account}/{queue}``
        - Local: ``http://localhost:4566/{account}/{queue}``, where the
          configured region is used

        Raises:
            ValueError: If the path does not hold an account and queue name.
        """
        url = urlparse(queue_url)
        path_parts = [part for part in url.path.split("/") if part]
        if len(path_parts) < 2:
            raise ValueError(f"Invalid SQS queue URL format: {queue_url}")

        account_id, queue_name = path_parts[0], path_parts[1]

        region = self.config.region
        hostname = url.hostname or ""
        host_parts = hostname.split(".")
        if "amazonaws.com" in hostname and len(host_parts) >= 2 and host_parts[0] == "sqs":
            region = host_parts[1]

        return f"arn:aws:sqs:{region}:{account_id}:{queue_name}"
