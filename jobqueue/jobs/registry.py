"""
Job definitions and the name-keyed job registry.
"""

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from jobqueue.errors import DuplicateJobNameError, JobNotFoundError
from jobqueue.types.job import JobDefinition, JobHandler, RetrySetting, UniqueConstraint

if TYPE_CHECKING:
    from jobqueue.core.module import ModuleConfig

logger = logging.getLogger(__name__)


def define_job(
    name: str,
    handler: JobHandler,
    *,
    queue: str | None = None,
    dead_letter_queue: str | None = None,
    schema: Any = None,
    retry: RetrySetting = None,
    unique: UniqueConstraint | None = None,
) -> JobDefinition:
    """
    Define a background job.

    Example:
        class SendEmail(BaseModel):
            to: str

        async def send_email(payload: SendEmail, context: JobContext) -> None:
            ...

        send_email_job = define_job("send-email", send_email, schema=SendEmail, retry=5)
    """
    if not name:
        raise ValueError("Job name is required")
    return JobDefinition(
        name=name,
        handler=handler,
        queue=queue,
        dead_letter_queue=dead_letter_queue,
        schema=schema,
        retry=retry,
        unique=unique,
    )


def define_periodic_job(name: str, handler: JobHandler, *, queue: str | None = None) -> JobDefinition:
    """
    Define a job triggered on a schedule rather than by producers.
    Periodic jobs take no payload.
    """
    return define_job(name, handler, queue=queue)


class JobRegistry:
    """
    Registry of job definitions keyed by name.

    Built once per process and read-only afterwards.
    """

    def __init__(self, jobs: Iterable[JobDefinition] = ()):
        self._jobs: dict[str, JobDefinition] = {}
        for job in jobs:
            self.register(job)

    def register(self, job: JobDefinition) -> "JobRegistry":
        """
        Register a job definition.

        Raises:
            DuplicateJobNameError: If a job with the same name exists.
        """
        if job.name in self._jobs:
            raise DuplicateJobNameError(job.name)
        self._jobs[job.name] = job
        logger.debug("Registered job", extra={"job_name": job.name})
        return self

    def get(self, name: str) -> JobDefinition | None:
        """Get a job by name, or None."""
        return self._jobs.get(name)

    def get_or_raise(self, name: str) -> JobDefinition:
        """
        Get a job by name.

        Raises:
            JobNotFoundError: If no job is registered under ``name``.
        """
        job = self._jobs.get(name)
        if job is None:
            raise JobNotFoundError(name)
        return job

    def list(self) -> list[JobDefinition]:
        """List all registered jobs."""
        return list(self._jobs.values())

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, name: object) -> bool:
        return name in self._jobs


def build_job_registry(modules: Iterable["ModuleConfig"]) -> JobRegistry:
    """Flatten the jobs of every module into a single registry."""
    registry = JobRegistry()
    for module in modules:
        for job in module.jobs:
            registry.register(job)
    return registry
