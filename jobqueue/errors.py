"""
Error taxonomy for job processing.

Each error class carries a ``kind`` discriminant. Code that decides what to
do with a failure inspects ``classify_error(exc)`` instead of walking the
class hierarchy.
"""

from datetime import timedelta
from typing import Any, ClassVar

from jobqueue.constants import ErrorKind


class JobQueueError(Exception):
    """Base class for all errors raised by this package."""

    kind: ClassVar[ErrorKind] = ErrorKind.UNCLASSIFIED


class PermanentJobError(JobQueueError):
    """Raised by a handler when the job must never be retried."""

    kind = ErrorKind.PERMANENT


class TransientJobError(JobQueueError):
    """
    Raised by a handler for a failure that should be retried.

    ``retry_after`` is advisory only. Redelivery timing belongs to the
    queue's visibility timeout.
    """

    kind = ErrorKind.TRANSIENT

    def __init__(self, message: str, retry_after: float | str | timedelta | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class InvalidJobPayloadError(JobQueueError):
    """Raised when a payload does not match the job's declared schema."""

    kind = ErrorKind.INVALID_PAYLOAD

    def __init__(self, job_name: str, issues: list[dict[str, Any]]):
        super().__init__(f'Invalid payload for job "{job_name}"')
        self.job_name = job_name
        self.issues = issues


class RetriesExhaustedError(JobQueueError):
    """
    Raised by the executor once a job has used up its attempts.

    Wraps the original handler error as ``__cause__`` so that dead-letter
    tooling can tell a job that gave up from one that is still retrying.
    """

    kind = ErrorKind.RETRIES_EXHAUSTED

    def __init__(self, job_name: str, attempt_number: int, max_attempts: int, cause: BaseException):
        super().__init__(
            f'Job "{job_name}" exhausted retries '
            f"(attempt {attempt_number} of {max_attempts}): {cause}"
        )
        self.job_name = job_name
        self.attempt_number = attempt_number
        self.max_attempts = max_attempts
        self.__cause__ = cause

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__


class PayloadTooLargeError(JobQueueError):
    """Raised when a serialized payload exceeds the queue's size limit."""

    kind = ErrorKind.PERMANENT

    def __init__(self, actual_size: int, max_size: int):
        super().__init__(
            f"Job payload size ({round(actual_size / 1024)}KB) exceeds queue limit "
            f"({round(max_size / 1024)}KB). Consider storing large data externally "
            "and passing a reference."
        )
        self.actual_size = actual_size
        self.max_size = max_size


class MessageParseError(JobQueueError):
    """Raised when a delivered message body is malformed."""

    kind = ErrorKind.PARSE

    def __init__(self, message: str, message_id: str | None = None, issues: list[Any] | None = None):
        super().__init__(message)
        self.message_id = message_id
        self.issues = issues or []


class DriverDisposedError(JobQueueError):
    """Raised when a driver is used after ``dispose()``."""


# ============================================================================
# Configuration errors
# ============================================================================


class ConfigurationError(JobQueueError):
    """
    Deployment or wiring mistake. Never retried and never swallowed.
    """

    kind = ErrorKind.CONFIGURATION


class JobNotFoundError(ConfigurationError):
    """Raised when a job name is not present in the registry."""

    def __init__(self, job_name: str):
        super().__init__(f'Job "{job_name}" not found in registry')
        self.job_name = job_name


class DuplicateJobNameError(ConfigurationError):
    """Raised when two job definitions share a name."""

    def __init__(self, job_name: str):
        super().__init__(f'Job "{job_name}" is already registered')
        self.job_name = job_name


class QueueNotConfiguredError(ConfigurationError):
    """Raised when a queue name cannot be resolved to a URL."""

    def __init__(self, queue_name: str):
        super().__init__(f'Queue "{queue_name}" is not configured')
        self.queue_name = queue_name


class SchedulerNotConfiguredError(ConfigurationError):
    """Raised when a delay beyond the native cap has no scheduler to go to."""


class CircularDependencyError(ConfigurationError):
    """Raised when the module import graph contains a cycle."""

    def __init__(self, path: list[str]):
        super().__init__(f"Circular dependency detected: {' -> '.join(path)}")
        self.path = path


class InvalidModuleError(ConfigurationError):
    """Raised when a module definition is malformed."""


class ServiceNotRegisteredError(ConfigurationError, KeyError):
    """Raised when resolving a service name nothing provides."""

    def __init__(self, name: str):
        ConfigurationError.__init__(self, f'Service "{name}" is not registered')
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


def classify_error(exc: BaseException) -> ErrorKind:
    """
    Return the error kind for any exception.

    Exceptions that do not come from this package are UNCLASSIFIED and go
    through the normal attempt-counting path.
    """
    if isinstance(exc, JobQueueError):
        return exc.kind
    return ErrorKind.UNCLASSIFIED
