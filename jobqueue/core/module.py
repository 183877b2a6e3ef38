"""
Module definitions.

A module groups service providers and job definitions, and may import other
modules. Modules are pure metadata; the container and the job registry are
built from them at worker bootstrap.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from jobqueue.errors import InvalidModuleError
from jobqueue.types.job import JobDefinition

if TYPE_CHECKING:
    from jobqueue.core.container import Scope

_UNSET: Any = object()


class ServiceScope(StrEnum):
    """Service lifetime for dependency injection."""

    SINGLETON = "singleton"
    SCOPED = "scoped"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class Provider:
    """
    A named service provider.

    Exactly one of ``value`` or ``factory`` must be given. Factories receive
    the resolving scope and may be async only when registered as singletons,
    in which case they are awaited once at bootstrap. ``dispose`` is called
    with the instance when its owning scope (or the container) is disposed.
    """

    provide: str
    value: Any = _UNSET
    factory: Callable[["Scope"], Any] | None = None
    scope: ServiceScope = ServiceScope.SINGLETON
    dispose: Callable[[Any], Awaitable[None] | None] | None = None

    def __post_init__(self) -> None:
        has_value = self.value is not _UNSET
        if has_value == (self.factory is not None):
            raise InvalidModuleError(f'Provider "{self.provide}" needs exactly one of value or factory')

    @property
    def is_value(self) -> bool:
        return self.value is not _UNSET


@dataclass
class ModuleConfig:
    """A module: providers, imported modules, exported provider names and jobs."""

    name: str
    providers: list[Provider] = field(default_factory=list)
    imports: list["ModuleConfig"] = field(default_factory=list)
    exports: list[str] = field(default_factory=list)
    jobs: list[JobDefinition] = field(default_factory=list)


def define_module(
    name: str,
    *,
    providers: list[Provider] | None = None,
    imports: list[ModuleConfig] | None = None,
    exports: list[str] | None = None,
    jobs: list[JobDefinition] | None = None,
) -> ModuleConfig:
    """
    Define a module and validate its shape.

    Raises:
        InvalidModuleError: If the name is empty or contains "/" or spaces,
            or if an export is not one of the module's providers.
    """
    module = ModuleConfig(
        name=name,
        providers=list(providers or []),
        imports=list(imports or []),
        exports=list(exports or []),
        jobs=list(jobs or []),
    )
    _validate_module(module)
    return module


def _validate_module(module: ModuleConfig) -> None:
    if not module.name:
        raise InvalidModuleError("Module name is required")
    if "/" in module.name or " " in module.name:
        raise InvalidModuleError('Module name must not contain "/" or spaces')

    provider_names = {provider.provide for provider in module.providers}
    for export in module.exports:
        if export not in provider_names:
            raise InvalidModuleError(
                f'Module "{module.name}" exports "{export}" but it\'s not in providers'
            )
