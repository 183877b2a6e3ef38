"""
Pytest configuration and shared fixtures.
"""

import json
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio

from jobqueue.core.bootstrap import build_container
from jobqueue.core.container import Container
from jobqueue.drivers.scheduler import EventBridgeSchedulerConfig, EventBridgeSchedulerDriver
from jobqueue.drivers.sqs import SQSDriverConfig, SQSQueueDriver
from jobqueue.types.job import JobExecution

TEST_REGION = "us-east-1"
TEST_ACCOUNT = "123456789012"
TEST_ROLE_ARN = f"arn:aws:iam::{TEST_ACCOUNT}:role/scheduler"
QUEUE_URL = f"https://sqs.{TEST_REGION}.amazonaws.com/{TEST_ACCOUNT}/jobs"
FIFO_QUEUE_URL = f"https://sqs.{TEST_REGION}.amazonaws.com/{TEST_ACCOUNT}/ordered.fifo"


class FakeSQSClient:
    """In-memory stand-in for a boto3 SQS client."""

    def __init__(self, message_id: str | None = None):
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self._message_id = message_id

    def send_message(self, **params: Any) -> dict[str, Any]:
        self.sent.append(params)
        if self._message_id == "":
            return {}
        return {"MessageId": self._message_id or f"msg-{len(self.sent)}"}

    def close(self) -> None:
        self.closed = True


class FakeSchedulerClient:
    """In-memory stand-in for a boto3 EventBridge Scheduler client."""

    def __init__(self, return_arn: bool = True):
        self.created: list[dict[str, Any]] = []
        self.deleted: list[dict[str, Any]] = []
        self.closed = False
        self._return_arn = return_arn

    def create_schedule(self, **params: Any) -> dict[str, Any]:
        self.created.append(params)
        if not self._return_arn:
            return {}
        return {
            "ScheduleArn": (
                f"arn:aws:scheduler:{TEST_REGION}:{TEST_ACCOUNT}:schedule/"
                f"{params['GroupName']}/{params['Name']}"
            )
        }

    def delete_schedule(self, **params: Any) -> dict[str, Any]:
        self.deleted.append(params)
        return {}

    def close(self) -> None:
        self.closed = True


class CountingFactory:
    """Client factory that records how many clients it created."""

    def __init__(self, client: Any):
        self.client = client
        self.calls = 0

    def __call__(self) -> Any:
        self.calls += 1
        return self.client


@pytest.fixture
def sqs_client() -> FakeSQSClient:
    """Create a fake SQS client."""
    return FakeSQSClient()


@pytest.fixture
def scheduler_client() -> FakeSchedulerClient:
    """Create a fake scheduler client."""
    return FakeSchedulerClient()


@pytest.fixture
def sqs_factory(sqs_client: FakeSQSClient) -> CountingFactory:
    """Create a counting factory for the fake SQS client."""
    return CountingFactory(sqs_client)


@pytest.fixture
def scheduler_factory(scheduler_client: FakeSchedulerClient) -> CountingFactory:
    """Create a counting factory for the fake scheduler client."""
    return CountingFactory(scheduler_client)


@pytest.fixture
def scheduler_driver(scheduler_factory: CountingFactory) -> EventBridgeSchedulerDriver:
    """Create a scheduler driver backed by the fake client."""
    return EventBridgeSchedulerDriver(
        EventBridgeSchedulerConfig(region=TEST_REGION, role_arn=TEST_ROLE_ARN, name_prefix="test"),
        client_factory=scheduler_factory,
    )


@pytest.fixture
def sqs_config() -> SQSDriverConfig:
    """Create an SQS driver config with a standard and a FIFO queue."""
    return SQSDriverConfig(
        region=TEST_REGION,
        queues={"default": QUEUE_URL, "ordered": FIFO_QUEUE_URL},
        default_queue="default",
    )


@pytest.fixture
def sqs_driver(sqs_config: SQSDriverConfig, sqs_factory: CountingFactory) -> SQSQueueDriver:
    """Create an SQS driver without a scheduler."""
    return SQSQueueDriver(sqs_config, client_factory=sqs_factory)


@pytest.fixture
def scheduling_sqs_driver(
    sqs_config: SQSDriverConfig,
    sqs_factory: CountingFactory,
    scheduler_driver: EventBridgeSchedulerDriver,
) -> SQSQueueDriver:
    """Create an SQS driver that hands long delays to the scheduler."""
    return SQSQueueDriver(sqs_config, scheduler=scheduler_driver, client_factory=sqs_factory)


@pytest.fixture
def make_execution() -> Callable[..., JobExecution]:
    """Factory for job executions."""

    def _make(job_name: str, payload: Any = None, attempt_number: int = 1) -> JobExecution:
        return JobExecution(
            job_id=f"job-{uuid4().hex[:8]}",
            job_name=job_name,
            payload=payload,
            attempt_number=attempt_number,
            enqueued_at=datetime.now(UTC),
        )

    return _make


@pytest.fixture
def make_record() -> Callable[..., dict[str, Any]]:
    """Factory for queue records as delivered in a batch event."""

    def _make(
        message_id: str,
        body: dict[str, Any] | str,
        receive_count: int | str | None = 1,
    ) -> dict[str, Any]:
        attributes: dict[str, Any] = {}
        if receive_count is not None:
            attributes["ApproximateReceiveCount"] = str(receive_count)
        return {
            "messageId": message_id,
            "receiptHandle": f"handle-{message_id}",
            "body": body if isinstance(body, str) else json.dumps(body),
            "attributes": attributes,
            "eventSource": "aws:sqs",
        }

    return _make


@pytest_asyncio.fixture
async def empty_container() -> Container:
    """Create a container with no providers."""
    return await build_container([])

