"""
Message type definitions shared by producers and the worker.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class JobMessage(BaseModel):
    """
    Message handed to a queue driver.
    Exists only in transit between producer code and the queue.
    """

    job_name: str
    payload: Any = None
    queue: str | None = None
    job_id: str | None = None
    metadata: dict[str, str] | None = None


class JobEnvelope(BaseModel):
    """
    Wire format of a queue message body.

    Serialized with camelCase aliases:
    ``{"jobName", "payload", "jobId", "metadata", "enqueuedAt"}``.
    Only ``jobName`` is required. Fields are accepted by alias only, so a body
    spelling ``job_name`` is missing its job name.
    """

    job_name: str = Field(alias="jobName")
    payload: Any = None
    job_id: str | None = Field(default=None, alias="jobId")
    metadata: dict[str, str] | None = None
    enqueued_at: datetime | None = Field(default=None, alias="enqueuedAt")

    @classmethod
    def from_message(cls, message: JobMessage, job_id: str) -> "JobEnvelope":
        """Build the envelope a producer sends for ``message``."""
        return cls(
            jobName=message.job_name,
            payload=message.payload,
            jobId=job_id,
            metadata=message.metadata,
            enqueuedAt=datetime.now(UTC),
        )

    def to_body(self) -> str:
        """Serialize to the JSON message body. Unset optional fields are omitted."""
        # Top-level only; None values inside the payload are kept
        omitted = {
            name for name in ("job_id", "metadata", "enqueued_at") if getattr(self, name) is None
        }
        return self.model_dump_json(by_alias=True, exclude=omitted)


class EnqueueResult(BaseModel):
    """
    Result returned after enqueuing a job.
    """

    message_id: str
    job_id: str


class ScheduleResult(EnqueueResult):
    """
    Result of routing a job through the scheduling service.
    ``schedule_name`` is what ``cancel_schedule`` expects.
    """

    schedule_arn: str
    schedule_name: str
