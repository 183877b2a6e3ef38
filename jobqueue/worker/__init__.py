"""
Worker module.
Contains the job executor, lifecycle hooks, and the invocation entry point.
"""

from jobqueue.worker.executor import decide_failure, execute_job, validate_payload
from jobqueue.worker.hooks import Hook, WorkerHooks, run_hooks
from jobqueue.worker.main import Worker, WorkerState, bootstrap_worker, is_batch_event, parse_record

__all__ = [
    "execute_job",
    "decide_failure",
    "validate_payload",
    "Hook",
    "WorkerHooks",
    "run_hooks",
    "Worker",
    "WorkerState",
    "bootstrap_worker",
    "is_batch_event",
    "parse_record",
]
