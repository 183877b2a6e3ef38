"""
Job definitions, registry, retry policy and the producer service.
"""

from jobqueue.jobs.registry import (
    JobRegistry,
    build_job_registry,
    define_job,
    define_periodic_job,
)
from jobqueue.jobs.retry import RETRIES_DISABLED, normalize_retry_config
from jobqueue.jobs.service import JobService
from jobqueue.jobs.utils import duration_to_seconds, generate_job_id, payload_size_bytes

__all__ = [
    "define_job",
    "define_periodic_job",
    "JobRegistry",
    "build_job_registry",
    "normalize_retry_config",
    "RETRIES_DISABLED",
    "JobService",
    "generate_job_id",
    "duration_to_seconds",
    "payload_size_bytes",
]
