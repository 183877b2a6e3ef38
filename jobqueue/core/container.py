"""
Dependency injection container.

Singletons live for the process; scoped services live for one job execution
and are disposed with their scope.
"""

import inspect
import logging
from collections.abc import AsyncGenerator, Iterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

from jobqueue.core.module import Provider, ServiceScope
from jobqueue.errors import ConfigurationError, ServiceNotRegisteredError

logger = logging.getLogger(__name__)


class ServiceMap(Mapping[str, Any]):
    """
    Read-only, lazily resolving view of a scope's services.

    Supports ``services["db"]`` and ``services.db``.
    """

    def __init__(self, scope: "Scope"):
        self._scope = scope

    def __getitem__(self, name: str) -> Any:
        return self._scope.resolve(name)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._scope.resolve(name)
        except ServiceNotRegisteredError as e:
            raise AttributeError(name) from e

    def __iter__(self) -> Iterator[str]:
        return iter(self._scope.container.registrations)

    def __len__(self) -> int:
        return len(self._scope.container.registrations)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._scope.container.has_registration(name)


class Scope:
    """
    An isolated set of resolved services for one unit of work.
    """

    def __init__(self, container: "Container"):
        self.container = container
        self.services = ServiceMap(self)
        self._instances: dict[str, Any] = {}
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def resolve(self, name: str) -> Any:
        """
        Resolve a service by name.

        Raises:
            ServiceNotRegisteredError: If nothing provides ``name``.
            ConfigurationError: If the scope has been disposed.
        """
        if self._disposed:
            raise ConfigurationError(f'Cannot resolve "{name}" from a disposed scope')

        provider = self.container.get_provider(name)
        if provider.is_value:
            return provider.value

        match provider.scope:
            case ServiceScope.SINGLETON:
                return self.container.resolve_singleton(provider)
            case ServiceScope.SCOPED:
                if name not in self._instances:
                    self._instances[name] = build_instance(provider, self)
                return self._instances[name]
            case ServiceScope.TRANSIENT:
                return build_instance(provider, self)

    async def dispose(self) -> None:
        """Dispose scoped instances in reverse creation order. Idempotent."""
        if self._disposed:
            return
        self._disposed = True
        instances, self._instances = self._instances, {}
        for name, instance in reversed(list(instances.items())):
            await dispose_instance(self.container.get_provider(name), instance)


class Container:
    """
    Service container built from module providers.

    Example:
        container = Container()
        container.register(Provider("db", factory=connect_db))
        await container.initialize()
        async with open_scope(container) as scope:
            scope.services.db
    """

    def __init__(self) -> None:
        self._providers: dict[str, Provider] = {}
        self._singletons: dict[str, Any] = {}
        self._root = Scope(self)

    @property
    def registrations(self) -> list[str]:
        return list(self._providers)

    def register(self, provider: Provider) -> None:
        if provider.provide in self._providers:
            logger.debug("Overriding provider", extra={"provider": provider.provide})
        self._providers[provider.provide] = provider

    def has_registration(self, name: str) -> bool:
        return name in self._providers

    def get_provider(self, name: str) -> Provider:
        try:
            return self._providers[name]
        except KeyError:
            raise ServiceNotRegisteredError(name) from None

    def resolve(self, name: str) -> Any:
        """Resolve a singleton, value or transient service outside any job scope."""
        return self._root.resolve(name)

    def resolve_singleton(self, provider: Provider) -> Any:
        if provider.provide not in self._singletons:
            self._singletons[provider.provide] = build_instance(provider, self._root)
        return self._singletons[provider.provide]

    async def initialize(self) -> None:
        """Await every async singleton factory once."""
        for provider in self._providers.values():
            if provider.provide in self._singletons or provider.factory is None:
                continue
            if not inspect.iscoroutinefunction(provider.factory):
                continue
            if provider.scope is not ServiceScope.SINGLETON:
                raise ConfigurationError(
                    f'Async provider "{provider.provide}" must be registered as a singleton'
                )
            try:
                self._singletons[provider.provide] = await provider.factory(self._root)
            except Exception:
                logger.exception(
                    "Failed to resolve async provider", extra={"provider": provider.provide}
                )
                raise

    def create_scope(self) -> Scope:
        return Scope(self)

    async def dispose(self) -> None:
        """Dispose singletons. Meant for process shutdown."""
        singletons, self._singletons = self._singletons, {}
        for name, instance in reversed(list(singletons.items())):
            await dispose_instance(self._providers[name], instance)


def build_instance(provider: Provider, scope: Scope) -> Any:
    """Call a provider's factory, rejecting unresolved async results."""
    instance = provider.factory(scope)
    if inspect.isawaitable(instance):
        if inspect.iscoroutine(instance):
            instance.close()
        raise ConfigurationError(
            f'Provider "{provider.provide}" returned an awaitable; '
            "async providers must be singletons resolved at bootstrap"
        )
    return instance


async def dispose_instance(provider: Provider, instance: Any) -> None:
    """Run a provider's dispose callback, logging rather than raising on failure."""
    if provider.dispose is None:
        return
    try:
        result = provider.dispose(instance)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception("Failed to dispose service", extra={"provider": provider.provide})


@asynccontextmanager
async def open_scope(container: Container) -> AsyncGenerator[Scope]:
    """
    Open a scope for one unit of work and dispose it on exit, whatever the
    exit path.
    """
    scope = container.create_scope()
    try:
        yield scope
    finally:
        await scope.dispose()
