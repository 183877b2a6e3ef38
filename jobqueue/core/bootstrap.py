"""
Module graph flattening, cycle detection and container construction.
"""

import logging
from collections.abc import Iterable

from jobqueue.core.container import Container
from jobqueue.core.module import ModuleConfig
from jobqueue.errors import CircularDependencyError

logger = logging.getLogger(__name__)


def collect_modules(root: ModuleConfig) -> list[ModuleConfig]:
    """
    Flatten a module and everything it imports, depth first.
    Each module appears once, keyed by name.
    """
    modules: dict[str, ModuleConfig] = {}

    def collect(module: ModuleConfig) -> None:
        if module.name in modules:
            return
        modules[module.name] = module
        for imported in module.imports:
            collect(imported)

    collect(root)
    return list(modules.values())


def validate_no_cycles(modules: Iterable[ModuleConfig]) -> None:
    """
    Reject circular imports between modules.

    Raises:
        CircularDependencyError: With the offending path, e.g. ``a -> b -> a``.
    """
    graph: dict[str, list[str]] = {}
    for module in modules:
        graph.setdefault(module.name, [])
        graph[module.name].extend(imported.name for imported in module.imports)

    visiting: set[str] = set()
    visited: set[str] = set()

    def visit(name: str, path: list[str]) -> None:
        if name in visiting:
            raise CircularDependencyError([*path, name])
        if name in visited:
            return

        visiting.add(name)
        for dependency in graph.get(name, []):
            visit(dependency, [*path, name])
        visiting.discard(name)
        visited.add(name)

    for name in graph:
        visit(name, [])


def register_module_providers(module: ModuleConfig, container: Container) -> None:
    """Register every provider a module declares."""
    for provider in module.providers:
        container.register(provider)
        logger.debug(
            "Registered provider",
            extra={"module": module.name, "provider": provider.provide, "scope": provider.scope},
        )


async def build_container(modules: Iterable[ModuleConfig]) -> Container:
    """
    Build a container from flattened modules and resolve async singletons.
    """
    container = Container()
    for module in modules:
        register_module_providers(module, container)
    await container.initialize()
    return container
