"""
Reinstall use case — replay a snapshot on this machine.

Loads the snapshot, wires the install adapters into a registry,
optionally takes a fresh inventory for the pre-check, drives the
planner and appends an audit entry.
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from reprovision.adapters.registry import AdapterRegistry
from reprovision.core.collectors.runner import build_collectors, collect_all
from reprovision.core.config.loader import ConfigError, load_settings
from reprovision.core.engine.planner import (
    InstallPlanItem,
    InstallPlanner,
    PresentSoftware,
    ReconcileReport,
    generate_operation_id,
)
from reprovision.core.models.inventory import InventorySnapshot
from reprovision.core.models.settings import Settings
from reprovision.core.persistence.audit import AuditEntry, AuditWriter
from reprovision.core.persistence.snapshot_file import SnapshotError, load_snapshot

logger = logging.getLogger(__name__)


@dataclass
class ReinstallResult:
    """Result of a reinstall run."""

    snapshot: InventorySnapshot | None = None
    snapshot_path: Path | None = None
    report: ReconcileReport | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        result["snapshot_path"] = str(self.snapshot_path)
        if self.snapshot:
            result["machine"] = self.snapshot.machine
            result["captured_at"] = self.snapshot.captured_at
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def default_registry(mock_mode: bool = False) -> AdapterRegistry:
    """Registry with every package-manager install adapter."""
    from reprovision.adapters.packages.chocolatey import ChocolateyAdapter
    from reprovision.adapters.packages.winget import WingetAdapter

    registry = AdapterRegistry(mock_mode=mock_mode)
    registry.register(WingetAdapter())
    registry.register(ChocolateyAdapter())
    return registry


@contextmanager
def interrupt_cancels(event: threading.Event) -> Iterator[None]:
    """Turn the first Ctrl+C into a cooperative cancel.

    The in-flight install is left to finish; a second Ctrl+C raises
    KeyboardInterrupt as usual. Only the main thread may install signal
    handlers, so elsewhere this is a no-op.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    previous = signal.getsignal(signal.SIGINT)

    def _handler(signum, frame):
        if event.is_set():
            signal.signal(signal.SIGINT, previous)
            raise KeyboardInterrupt
        logger.warning("Interrupt received — finishing the current install, then stopping")
        event.set()

    signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _present_software(settings: Settings) -> PresentSoftware:
    collection = collect_all(
        build_collectors(settings),
        parallel=settings.collection.parallel,
        max_workers=settings.collection.max_workers,
    )
    return PresentSoftware.from_records(collection.records)


def run_reinstall(
    snapshot_path: Path,
    config_path: Path | None = None,
    dry_run: bool = False,
    mock_mode: bool = False,
    skip_present: bool | None = None,
    install_timeout: int | None = None,
    settings: Settings | None = None,
    registry: AdapterRegistry | None = None,
    present: PresentSoftware | None = None,
    cancel_event: threading.Event | None = None,
    on_progress: Callable[[InstallPlanItem], None] | None = None,
) -> ReinstallResult:
    """Reinstall every entry of a snapshot, best effort.

    Args:
        snapshot_path: Snapshot written by an export run.
        config_path: Optional explicit settings file.
        dry_run: Validate the first candidate per entry, install nothing.
        mock_mode: Pretend every install succeeds.
        skip_present: Override ``reinstall.skip_present``.
        install_timeout: Override ``reinstall.install_timeout`` (seconds).
        settings: Pre-loaded settings (skips config lookup).
        registry: Pre-configured adapter registry.
        present: Pre-computed present software for the pre-check.
        cancel_event: Cancels the run once set.
        on_progress: Called after each entry is reconciled.

    Returns:
        ReinstallResult; per-entry failures live in the report, ``error``
        is only set when the run could not start.
    """
    result = ReinstallResult(snapshot_path=snapshot_path)
    start = time.monotonic()

    # ── Load settings & snapshot ─────────────────────────────────
    try:
        if settings is None:
            settings = load_settings(config_path)
        snapshot = load_snapshot(snapshot_path)
    except (ConfigError, SnapshotError) as e:
        result.error = str(e)
        return result
    result.snapshot = snapshot

    reinstall = settings.reinstall
    if skip_present is None:
        skip_present = reinstall.skip_present
    if install_timeout is None:
        install_timeout = reinstall.install_timeout

    # ── Pre-check ────────────────────────────────────────────────
    if skip_present and present is None:
        logger.info("Collecting present software for the pre-check")
        present = _present_software(settings)
    elif not skip_present:
        present = None

    # ── Execute ──────────────────────────────────────────────────
    if registry is None:
        registry = default_registry(mock_mode=mock_mode)
    elif mock_mode:
        registry.set_mock_mode(True)

    operation_id = generate_operation_id()
    planner = InstallPlanner(
        registry,
        install_timeout=install_timeout,
        renamed_packages=reinstall.renamed_packages,
        present=present,
        dry_run=dry_run,
        cancel_event=cancel_event,
        on_progress=on_progress,
    )
    report = planner.run(snapshot, operation_id=operation_id)
    result.report = report

    logger.info(
        "Reinstall %s: %s",
        operation_id,
        ", ".join(f"{k}={v}" for k, v in report.counts().items()),
    )

    # ── Audit ────────────────────────────────────────────────────
    AuditWriter(state_dir=settings.state_path).write(
        AuditEntry(
            operation_id=operation_id,
            operation_type="reinstall",
            machine=snapshot.machine,
            snapshot_path=str(snapshot_path),
            status=report.status,
            entries_total=report.total,
            counts=report.counts(),
            duration_ms=int((time.monotonic() - start) * 1000),
            errors=[f"{f.name}: {f.reason}" for f in report.follow_ups],
            context={
                "dry_run": dry_run,
                "mock": registry.mock_mode,
                "skip_present": bool(skip_present),
            },
        )
    )

    return result
