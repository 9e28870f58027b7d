"""Collectors — read-only inventory sources.

Public re-exports for convenient access.
"""

from reprovision.core.collectors.appx import AppxCollector
from reprovision.core.collectors.base import Collector
from reprovision.core.collectors.chocolatey import ChocolateyCollector
from reprovision.core.collectors.registry import RegistryCollector
from reprovision.core.collectors.runner import (
    COLLECTOR_NAMES,
    CollectionResult,
    build_collectors,
    collect_all,
)
from reprovision.core.collectors.winget import WingetCollector

__all__ = [
    "COLLECTOR_NAMES",
    "AppxCollector",
    "ChocolateyCollector",
    "CollectionResult",
    "Collector",
    "RegistryCollector",
    "WingetCollector",
    "build_collectors",
    "collect_all",
]
