"""
Queue driver interface and lazy client management.
"""

import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

from jobqueue.errors import DriverDisposedError
from jobqueue.types.messages import EnqueueResult, JobMessage

logger = logging.getLogger(__name__)


@runtime_checkable
class QueueDriver(Protocol):
    """
    Producer-side queue driver.

    ``enqueue_at`` and ``enqueue_in`` are optional; callers check for them
    with ``getattr``.
    """

    name: str
    default_queue: str | None

    async def enqueue(self, message: JobMessage) -> EnqueueResult: ...


class ClientState(StrEnum):
    """
    Lifecycle of a lazily created network client.

    UNINITIALIZED -> READY on first use, any state -> DISPOSED on dispose.
    DISPOSED is terminal.
    """

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    DISPOSED = "disposed"


class LazyClient:
    """
    Holds a network client created on first use and reused until disposed.
    """

    def __init__(self, factory: Callable[[], Any], owner: str):
        self._factory = factory
        self._owner = owner
        self._client: Any = None
        self._state = ClientState.UNINITIALIZED

    @property
    def state(self) -> ClientState:
        return self._state

    def ensure_usable(self) -> None:
        """
        Raises:
            DriverDisposedError: If the client has been disposed.
        """
        if self._state is ClientState.DISPOSED:
            raise DriverDisposedError(f"{self._owner} driver has been disposed")

    def get(self) -> Any:
        """Return the client, creating it on first call."""
        self.ensure_usable()
        if self._state is ClientState.UNINITIALIZED:
            self._client = self._factory()
            self._state = ClientState.READY
            logger.debug("Created client", extra={"driver": self._owner})
        return self._client

    def dispose(self) -> None:
        """Release the client. Further use raises ``DriverDisposedError``."""
        if self._state is ClientState.READY:
            close = getattr(self._client, "close", None)
            if callable(close):
                close()
        self._client = None
        self._state = ClientState.DISPOSED
