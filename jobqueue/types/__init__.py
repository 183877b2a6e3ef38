"""
Type definitions for the job queue.
Contains job, message and host event types, grouped by module.
"""

from jobqueue.types.events import (
    BatchItemFailure,
    BatchResponse,
    QueueRecord,
)
from jobqueue.types.job import (
    JobContext,
    JobDefinition,
    JobExecution,
    JobHandler,
    RetryConfig,
    RetryOptions,
    RetrySetting,
    UniqueConstraint,
)
from jobqueue.types.messages import (
    EnqueueResult,
    JobEnvelope,
    JobMessage,
    ScheduleResult,
)

__all__ = [
    # Job types
    "JobDefinition",
    "JobHandler",
    "JobExecution",
    "JobContext",
    "RetryConfig",
    "RetryOptions",
    "RetrySetting",
    "UniqueConstraint",
    # Message types
    "JobMessage",
    "JobEnvelope",
    "EnqueueResult",
    "ScheduleResult",
    # Event types
    "QueueRecord",
    "BatchItemFailure",
    "BatchResponse",
]
