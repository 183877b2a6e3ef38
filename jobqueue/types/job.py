"""
Job-related type definitions for internal use.
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import cached_property
from typing import Any, TypedDict

import structlog
from pydantic import TypeAdapter

# Handler signature: (payload, context) -> None, sync or async
JobHandler = Callable[[Any, "JobContext"], Awaitable[None] | None]


class RetryOptions(TypedDict, total=False):
    """Object form of a job's retry configuration."""

    max_attempts: int
    dead: bool


RetrySetting = RetryOptions | Mapping[str, Any] | int | float | bool | None


@dataclass(frozen=True)
class RetryConfig:
    """
    Canonical retry policy.

    ``max_attempts`` is None when retries are disabled, in which case
    dead-lettering on exhaustion is always off.
    """

    max_attempts: int | None
    dead_letter_on_exhaustion: bool

    @property
    def disabled(self) -> bool:
        return self.max_attempts is None


@dataclass(frozen=True)
class UniqueConstraint:
    """
    Deduplication descriptor for ordered queues.

    ``key`` maps a payload to a stable id. ``window`` is advisory; FIFO
    queues cap deduplication at five minutes.
    """

    key: Callable[[Any], str]
    window: float | str | timedelta | None = None


@dataclass(frozen=True)
class JobDefinition:
    """
    A registered background job.

    Created once at module registration and looked up by ``name`` from the
    job registry.
    """

    name: str
    handler: JobHandler
    queue: str | None = None
    # Informational only; the redrive policy lives in queue infrastructure
    dead_letter_queue: str | None = None
    schema: Any = None
    retry: RetrySetting = None
    unique: UniqueConstraint | None = None

    @cached_property
    def payload_adapter(self) -> TypeAdapter | None:
        """Pydantic adapter for ``schema``, or None when no schema is declared."""
        if self.schema is None:
            return None
        return TypeAdapter(self.schema)


@dataclass
class JobExecution:
    """
    One delivered unit of work, as seen by the executor.
    Built per delivery and discarded once the outcome is decided.
    """

    job_id: str
    job_name: str
    payload: Any
    attempt_number: int
    enqueued_at: datetime
    metadata: dict[str, str] | None = None


@dataclass
class JobContext:
    """
    Context passed to job handlers during execution.
    Bundles the scope's services with job metadata.
    """

    services: Mapping[str, Any]
    job_id: str
    attempt_number: int
    enqueued_at: datetime
    logger: structlog.stdlib.BoundLogger | None = None
