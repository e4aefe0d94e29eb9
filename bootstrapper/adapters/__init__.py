"""Adapters — bindings for package managers, git, HTTP and the filesystem.

Public re-exports for convenient access.
"""

from bootstrapper.adapters.base import Adapter, ExecutionContext
from bootstrapper.adapters.mock import MockAdapter
from bootstrapper.adapters.registry import AdapterRegistry, default_registry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "default_registry",
]
