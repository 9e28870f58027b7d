"""
Export use case — capture this machine's inventory.

Loads settings, runs the collectors, merges their records, writes the
snapshot and its text report, and appends an audit entry.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from reprovision.core.collectors.base import Collector
from reprovision.core.collectors.runner import (
    COLLECTOR_NAMES,
    CollectionResult,
    build_collectors,
    collect_all,
)
from reprovision.core.config.loader import ConfigError, load_settings
from reprovision.core.engine.merger import build_snapshot
from reprovision.core.engine.planner import generate_operation_id
from reprovision.core.models.inventory import InventorySnapshot
from reprovision.core.models.settings import Settings
from reprovision.core.persistence.audit import AuditEntry, AuditWriter
from reprovision.core.persistence.report import default_report_path, save_report
from reprovision.core.persistence.snapshot_file import (
    DEFAULT_SNAPSHOT_FILE,
    PersistenceError,
    save_snapshot,
)

logger = logging.getLogger(__name__)


@dataclass
class ExportResult:
    """Result of an export run."""

    operation_id: str = ""
    snapshot: InventorySnapshot | None = None
    collection: CollectionResult | None = None
    snapshot_path: Path | None = None
    report_path: Path | None = None
    error: str | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        if self.error:
            return "failed"
        if self.collection and self.collection.errors:
            return "partial"
        return "ok"

    def to_dict(self) -> dict:
        result: dict = {"operation_id": self.operation_id, "status": self.status}
        if self.error:
            result["error"] = self.error
        if self.snapshot_path:
            result["snapshot_path"] = str(self.snapshot_path)
        if self.report_path:
            result["report_path"] = str(self.report_path)
        if self.snapshot:
            result["machine"] = self.snapshot.machine
            result["captured_at"] = self.snapshot.captured_at
            result["total"] = self.snapshot.total
            result["by_source"] = self.snapshot.count_by_kind()
        if self.collection:
            result["collection"] = self.collection.to_dict()
        return result


def run_export(
    output: Path | None = None,
    report: Path | None = None,
    config_path: Path | None = None,
    sources: Sequence[str] | None = None,
    parallel: bool | None = None,
    settings: Settings | None = None,
    collectors: Sequence[Collector] | None = None,
) -> ExportResult:
    """Collect, merge and persist the inventory.

    Args:
        output: Snapshot path (default: ./inventory.json).
        report: Report path (default: next to the snapshot).
        config_path: Optional explicit settings file.
        sources: Optional subset of collector names.
        parallel: Override ``collection.parallel``.
        settings: Pre-loaded settings (skips config lookup).
        collectors: Pre-built collectors (skips ``build_collectors``).

    Returns:
        ExportResult; ``error`` is set when nothing usable was written.
    """
    result = ExportResult(operation_id=generate_operation_id())
    start = time.monotonic()

    # ── Load settings ────────────────────────────────────────────
    if settings is None:
        try:
            settings = load_settings(config_path)
        except ConfigError as e:
            result.error = str(e)
            return result

    if sources:
        unknown = [name for name in sources if name not in COLLECTOR_NAMES]
        if unknown:
            result.error = (
                f"Unknown source(s): {', '.join(unknown)} "
                f"(expected one of {', '.join(COLLECTOR_NAMES)})"
            )
            return result

    # ── Collect & merge ──────────────────────────────────────────
    if collectors is None:
        collectors = build_collectors(settings, only=sources)
    if parallel is None:
        parallel = settings.collection.parallel

    collection = collect_all(
        collectors,
        parallel=parallel,
        max_workers=settings.collection.max_workers,
    )
    result.collection = collection
    result.errors.extend(f"{name}: {msg}" for name, msg in collection.errors.items())

    snapshot = build_snapshot(collection.records)
    result.snapshot = snapshot

    # ── Persist ──────────────────────────────────────────────────
    snapshot_path = output or Path(DEFAULT_SNAPSHOT_FILE)
    report_path = report or default_report_path(snapshot_path)
    try:
        save_snapshot(snapshot, snapshot_path)
        result.snapshot_path = snapshot_path
        save_report(snapshot, report_path)
        result.report_path = report_path
    except PersistenceError as e:
        result.error = str(e)
        result.errors.append(str(e))

    logger.info(
        "Export %s: %d entries from %d records",
        result.operation_id,
        snapshot.total,
        collection.total,
    )

    # ── Audit ────────────────────────────────────────────────────
    AuditWriter(state_dir=settings.state_path).write(
        AuditEntry(
            operation_id=result.operation_id,
            operation_type="export",
            machine=snapshot.machine,
            snapshot_path=str(snapshot_path),
            status=result.status,
            entries_total=snapshot.total,
            counts=collection.counts,
            duration_ms=int((time.monotonic() - start) * 1000),
            errors=result.errors,
            context={"unavailable": collection.unavailable, "parallel": parallel},
        )
    )

    return result
