"""
Worker lifecycle hooks.

Hooks are observers: each one runs in order, and one that raises is logged
and counted without affecting the job outcome or the remaining hooks.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from jobqueue.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

# (execution, context) for start/complete, (execution, context, error) for failed/dead-letter
Hook = Callable[..., Awaitable[None] | None]


def _as_list(hooks: Hook | Iterable[Hook] | None) -> list[Hook]:
    if hooks is None:
        return []
    if callable(hooks):
        return [hooks]
    return list(hooks)


@dataclass
class WorkerHooks:
    """
    Observer lists for job lifecycle events.

    Example:
        hooks = WorkerHooks.of(
            on_job_failed=report_failure,
            on_job_dead_letter=[page_on_call, archive_payload],
        )
    """

    on_job_start: list[Hook] = field(default_factory=list)
    on_job_complete: list[Hook] = field(default_factory=list)
    on_job_failed: list[Hook] = field(default_factory=list)
    on_job_dead_letter: list[Hook] = field(default_factory=list)

    @classmethod
    def of(
        cls,
        on_job_start: Hook | Iterable[Hook] | None = None,
        on_job_complete: Hook | Iterable[Hook] | None = None,
        on_job_failed: Hook | Iterable[Hook] | None = None,
        on_job_dead_letter: Hook | Iterable[Hook] | None = None,
    ) -> "WorkerHooks":
        """Build hooks from single callables or lists of them."""
        return cls(
            on_job_start=_as_list(on_job_start),
            on_job_complete=_as_list(on_job_complete),
            on_job_failed=_as_list(on_job_failed),
            on_job_dead_letter=_as_list(on_job_dead_letter),
        )


async def run_hooks(name: str, hooks: Iterable[Hook], *args: Any) -> None:
    """
    Invoke each hook with ``args``, awaiting async hooks.

    Args:
        name: Hook name, used for logging and metrics.
        hooks: Observers to call in order.
        *args: Arguments passed to every observer.
    """
    for hook in hooks:
        try:
            result = hook(*args)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Worker hook failed", extra={"hook": name})
            get_metrics().record_hook_failure(name)
