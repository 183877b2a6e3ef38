"""
In-memory queue driver for testing producer code.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from jobqueue.jobs.utils import generate_job_id
from jobqueue.types.messages import EnqueueResult, JobMessage


@dataclass
class MockEnqueuedJob:
    """A job captured by the mock driver."""

    message: JobMessage
    at: datetime | None = None
    delay: float | str | timedelta | None = None


class MockQueueDriver:
    """
    Queue driver that records enqueued jobs instead of sending them.
    """

    name = "mock"

    def __init__(self, default_queue: str | None = None):
        self.default_queue = default_queue
        self.enqueued: list[MockEnqueuedJob] = []
        self._counter = 0
        self._fail_next: Exception | None = None

    def simulate_failure(self, error: Exception | None = None) -> None:
        """Make the next enqueue call raise ``error``."""
        self._fail_next = error or RuntimeError("Mock enqueue failure")

    def clear(self) -> None:
        """Clear stored jobs and reset counters."""
        self.enqueued.clear()
        self._counter = 0
        self._fail_next = None

    @property
    def last_job(self) -> MockEnqueuedJob | None:
        return self.enqueued[-1] if self.enqueued else None

    async def enqueue(self, message: JobMessage) -> EnqueueResult:
        if self._fail_next is not None:
            error, self._fail_next = self._fail_next, None
            raise error

        job_id = message.job_id or generate_job_id()
        self._counter += 1
        self.enqueued.append(MockEnqueuedJob(message=message.model_copy(update={"job_id": job_id})))
        return EnqueueResult(message_id=f"mock-{self._counter}", job_id=job_id)

    async def enqueue_at(self, message: JobMessage, at: datetime) -> EnqueueResult:
        result = await self.enqueue(message)
        self.enqueued[-1].at = at
        return result

    async def enqueue_in(self, message: JobMessage, delay: float | str | timedelta) -> EnqueueResult:
        result = await self.enqueue(message)
        self.enqueued[-1].delay = delay
        return result
