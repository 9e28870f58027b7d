"""Adapters — install bindings for package managers.

Public re-exports for convenient access.
"""

from reprovision.adapters.base import Adapter, ExecutionContext
from reprovision.adapters.mock import MockAdapter
from reprovision.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
]
