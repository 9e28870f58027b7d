"""
Collection runner — fan the collectors out, join, hand off to the merger.

Collectors only read, and each reads a different system resource, so
they run in parallel worker threads. Each worker drains its collector
into a list; the runner waits for all of them before anything is
merged. Records are concatenated in the collectors' declared order, so
the merge result does not depend on which worker finished first.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any

from reprovision.core.collectors.appx import AppxCollector
from reprovision.core.collectors.base import Collector
from reprovision.core.collectors.chocolatey import ChocolateyCollector
from reprovision.core.collectors.registry import RegistryCollector
from reprovision.core.collectors.winget import WingetCollector
from reprovision.core.models.inventory import SoftwareRecord
from reprovision.core.models.settings import Settings

logger = logging.getLogger(__name__)

COLLECTOR_NAMES = ("registry", "winget", "chocolatey", "appx")


@dataclass
class CollectionResult:
    """Joined output of one collection pass."""

    records: list[SoftwareRecord] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)
    unavailable: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.records)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "counts": self.counts,
            "unavailable": self.unavailable,
            "errors": self.errors,
        }


def build_collectors(settings: Settings, only: Sequence[str] | None = None) -> list[Collector]:
    """Instantiate the enabled collectors in their canonical order.

    Args:
        settings: Loaded settings.
        only: Optional subset of collector names; overrides ``enabled``.
    """
    sources = settings.sources
    timeout = settings.collection.command_timeout
    wanted = set(only) if only else set(sources.enabled_names())

    collectors: list[Collector] = []
    if "registry" in wanted:
        collectors.append(RegistryCollector())
    if "winget" in wanted:
        collectors.append(WingetCollector(channels=sources.winget.channels, timeout=timeout))
    if "chocolatey" in wanted:
        collectors.append(ChocolateyCollector(root=sources.chocolatey.root))
    if "appx" in wanted:
        collectors.append(AppxCollector(timeout=timeout))
    return collectors


@dataclass
class _Drained:
    available: bool = False
    records: list[SoftwareRecord] = field(default_factory=list)
    error: str | None = None


def _drain(collector: Collector) -> _Drained:
    """Pull every record out of one collector.

    Records yielded before a failure are kept; the failure is recorded
    next to them.
    """
    drained = _Drained()
    try:
        drained.available = collector.is_available()
        if drained.available:
            for record in collector.produce():
                drained.records.append(record)
    except Exception as e:
        logger.error(
            "Collector %s failed after %d record(s): %s",
            collector.name, len(drained.records), e,
        )
        drained.error = str(e)
    return drained


def collect_all(
    collectors: Sequence[Collector],
    parallel: bool = True,
    max_workers: int | None = None,
) -> CollectionResult:
    """Run every collector and join their records.

    A collector that raises keeps the records it yielded before the
    failure; its error is recorded and the other collectors are
    unaffected.
    """
    outcomes: dict[str, _Drained] = {}

    if parallel and len(collectors) > 1:
        workers = max_workers or len(collectors)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="collector") as pool:
            futures = {pool.submit(_drain, c): c.name for c in collectors}
            for future in as_completed(futures):
                outcomes[futures[future]] = future.result()
    else:
        for collector in collectors:
            outcomes[collector.name] = _drain(collector)

    # ── Join in declared order ──────────────────────────────────
    result = CollectionResult()
    for collector in collectors:
        drained = outcomes[collector.name]
        available, records = drained.available, drained.records
        if drained.error is not None:
            result.errors[collector.name] = drained.error
        elif not available:
            result.unavailable.append(collector.name)
        result.counts[collector.name] = len(records)
        result.records.extend(records)

    logger.info(
        "Collected %d record(s): %s",
        result.total,
        ", ".join(f"{name}={count}" for name, count in result.counts.items()),
    )
    return result
