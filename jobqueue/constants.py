"""
Application constants.
Centralized location for all constant values used across the package.
"""

from enum import StrEnum


class ErrorKind(StrEnum):
    """
    Discriminant carried by every job error.

    The executor's failure decision matches on this value rather than on
    the exception class hierarchy.
    """

    PERMANENT = "permanent"
    TRANSIENT = "transient"
    INVALID_PAYLOAD = "invalid_payload"
    RETRIES_EXHAUSTED = "retries_exhausted"
    CONFIGURATION = "configuration"
    PARSE = "parse"
    UNCLASSIFIED = "unclassified"


class JobOutcome(StrEnum):
    """
    Final outcome of one job delivery.

    - COMPLETED: handler succeeded, message acknowledged
    - RETRY: error rethrown, host redelivers
    - DEAD_LETTER: error rethrown, host routes to the dead-letter destination
    - DISCARDED: error swallowed, message acknowledged and dropped
    """

    COMPLETED = "completed"
    RETRY = "retry"
    DEAD_LETTER = "dead_letter"
    DISCARDED = "discarded"


class FailureDecision(StrEnum):
    """Action chosen for a failed handler invocation."""

    RETRY = "retry"
    DEAD_LETTER = "dead_letter"
    DISCARD = "discard"
    EXHAUSTED = "exhausted"
    EXHAUSTED_DISCARD = "exhausted_discard"


class EnqueueRoute(StrEnum):
    """How a message reached (or will reach) the queue."""

    IMMEDIATE = "immediate"
    DELAYED = "delayed"
    SCHEDULED = "scheduled"


# Default values
DEFAULT_MAX_ATTEMPTS = 25
DEFAULT_QUEUE_NAME = "default"
DEFAULT_MAX_PAYLOAD_BYTES = 256 * 1024
DEFAULT_SCHEDULE_GROUP = "default"
DEFAULT_SCHEDULE_PREFIX = "jobqueue"

# SQS caps DelaySeconds at 15 minutes
MAX_NATIVE_DELAY_SECONDS = 900

FIFO_QUEUE_SUFFIX = ".fifo"
DIRECT_JOB_ID_PREFIX = "eb-"

# Host event fields
RECEIVE_COUNT_ATTRIBUTE = "ApproximateReceiveCount"
JOB_NAME_MESSAGE_ATTRIBUTE = "JobName"

# Metrics names
METRIC_JOBS_ENQUEUED = "jobs_enqueued_total"
METRIC_JOBS_PROCESSED = "jobs_processed_total"
METRIC_JOB_DURATION = "job_duration_seconds"
METRIC_BATCH_ITEM_FAILURES = "batch_item_failures_total"
METRIC_HOOK_FAILURES = "hook_failures_total"

# Trace span names
SPAN_ENQUEUE_JOB = "enqueue_job"
SPAN_EXECUTE_JOB = "execute_job"
SPAN_SCHEDULE_JOB = "schedule_job"
