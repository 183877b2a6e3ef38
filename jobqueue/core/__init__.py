"""
Modules, dependency injection and bootstrap.
"""

from jobqueue.core.bootstrap import (
    build_container,
    collect_modules,
    register_module_providers,
    validate_no_cycles,
)
from jobqueue.core.container import Container, Scope, ServiceMap, open_scope
from jobqueue.core.module import ModuleConfig, Provider, ServiceScope, define_module

__all__ = [
    "ModuleConfig",
    "Provider",
    "ServiceScope",
    "define_module",
    "Container",
    "Scope",
    "ServiceMap",
    "open_scope",
    "collect_modules",
    "validate_no_cycles",
    "register_module_providers",
    "build_container",
]
