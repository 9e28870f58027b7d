"""
Installer planner — replay an inventory snapshot on this machine.

Each entry is reconciled on its own:

    pending → attempting(candidate) → installed
                                    → attempting(next candidate)
                                    → exhausted

Candidates are the entry's package-manager references, ordered by
source preference (winget before chocolatey, discovery order within a
source). The first successful install stops the chain. Entries without
any automatable reference never reach an installer: they go straight to
the manual follow-up list with a reason specific to where they came from.

Installs run strictly one at a time; package managers hold exclusive
locks (the MSI mutex, choco's lib lock) and concurrent installs deadlock.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from reprovision.adapters.registry import AdapterRegistry
from reprovision.core.models.action import Action, Receipt
from reprovision.core.models.inventory import (
    IdentityKey,
    InventorySnapshot,
    MergedEntry,
    SoftwareRecord,
    SourceKind,
    SourceReference,
    normalize,
)

logger = logging.getLogger(__name__)


class PlanState(StrEnum):
    """Reconciliation state of one inventory entry."""

    PENDING = "pending"
    ATTEMPTING = "attempting"
    INSTALLED = "installed"
    EXHAUSTED = "exhausted"
    SKIPPED = "skipped"          # already present (pre-check mode)
    PLANNED = "planned"          # dry run
    CANCELLED = "cancelled"      # run cancelled before this entry started


# Automatable source kinds in preference order, with the adapter that installs them.
INSTALL_ADAPTERS: dict[SourceKind, str] = {
    SourceKind.WINGET: "winget",
    SourceKind.CHOCOLATEY: "chocolatey",
}

MANUAL_REASONS: dict[SourceKind, str] = {
    SourceKind.APPX: "Store app: reinstall from the Microsoft Store ({identifier})",
    SourceKind.REGISTRY: "Registry-only entry: no package id, reinstall manually",
}

NO_SOURCE_REASON = "No install source recorded"
FAILED_REASON = "Automated install failed ({attempts}): reinstall manually"


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"op-{now}-{short}"


# ── Plan types ──────────────────────────────────────────────────


@dataclass(frozen=True)
class Candidate:
    """One way to install an entry: a source reference and its adapter."""

    source: SourceReference
    adapter: str
    identifier: str

    @property
    def renamed(self) -> bool:
        """Whether the recorded identifier was replaced by a rename rule."""
        return self.identifier != self.source.identifier

    @property
    def label(self) -> str:
        label = f"{self.adapter}:{self.identifier}"
        if self.renamed:
            label += f" (was {self.source.identifier})"
        return label


@dataclass
class InstallAttempt:
    candidate: Candidate
    receipt: Receipt

    @property
    def success(self) -> bool:
        return self.receipt.ok

    def to_dict(self) -> dict[str, Any]:
        return {
            "adapter": self.candidate.adapter,
            "identifier": self.candidate.identifier,
            "origin": self.candidate.source.origin,
            "renamed_from": self.candidate.source.identifier if self.candidate.renamed else None,
            "status": self.receipt.status,
            "error": self.receipt.error,
            "duration_ms": self.receipt.duration_ms,
        }


@dataclass
class ManualFollowUp:
    name: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "reason": self.reason}


@dataclass
class InstallPlanItem:
    """An inventory entry paired with what happened when installing it."""

    entry: MergedEntry
    candidates: list[Candidate] = field(default_factory=list)
    state: PlanState = PlanState.PENDING
    attempts: list[InstallAttempt] = field(default_factory=list)
    follow_up: ManualFollowUp | None = None

    @property
    def installed_by(self) -> Candidate | None:
        for attempt in self.attempts:
            if attempt.success:
                return attempt.candidate
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.entry.name,
            "version": self.entry.version,
            "state": self.state.value,
            "attempts": [a.to_dict() for a in self.attempts],
            "follow_up": self.follow_up.to_dict() if self.follow_up else None,
        }


@dataclass
class ReconcileReport:
    """Result of one reinstall run."""

    operation_id: str = ""
    dry_run: bool = False
    items: list[InstallPlanItem] = field(default_factory=list)

    def _count(self, state: PlanState) -> int:
        return sum(1 for item in self.items if item.state == state)

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def installed(self) -> int:
        return self._count(PlanState.INSTALLED)

    @property
    def renamed(self) -> int:
        return sum(
            1
            for item in self.items
            if item.state == PlanState.INSTALLED and item.installed_by and item.installed_by.renamed
        )

    @property
    def failed(self) -> int:
        return sum(
            1 for item in self.items if item.state == PlanState.EXHAUSTED and item.attempts
        )

    @property
    def skipped(self) -> int:
        return self._count(PlanState.SKIPPED)

    @property
    def planned(self) -> int:
        return self._count(PlanState.PLANNED)

    @property
    def cancelled(self) -> int:
        return self._count(PlanState.CANCELLED)

    @property
    def follow_ups(self) -> list[ManualFollowUp]:
        return [item.follow_up for item in self.items if item.follow_up]

    @property
    def manual(self) -> int:
        return len(self.follow_ups)

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "ok"
        if self.installed > 0:
            return "partial"
        return "failed"

    def counts(self) -> dict[str, int]:
        return {
            "installed": self.installed,
            "renamed": self.renamed,
            "failed": self.failed,
            "manual": self.manual,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "planned": self.planned,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "dry_run": self.dry_run,
            "status": self.status,
            "total": self.total,
            "counts": self.counts(),
            "items": [item.to_dict() for item in self.items],
            "follow_ups": [f.to_dict() for f in self.follow_ups],
        }


# ── Candidate selection ─────────────────────────────────────────


def candidates_for(
    entry: MergedEntry,
    renamed_packages: dict[str, str] | None = None,
) -> list[Candidate]:
    """Ordered install candidates for an entry.

    Source kinds follow ``INSTALL_ADAPTERS`` order; references of one kind
    keep their discovery order (preferred channel before fallback).
    """
    renames = renamed_packages or {}
    candidates = []
    for kind, adapter in INSTALL_ADAPTERS.items():
        for ref in entry.sources_of(kind):
            identifier = renames.get(ref.identifier, ref.identifier)
            candidates.append(Candidate(source=ref, adapter=adapter, identifier=identifier))
    return candidates


def manual_reason(entry: MergedEntry) -> str:
    """Why an entry without install candidates needs a human."""
    for kind, template in MANUAL_REASONS.items():
        refs = entry.sources_of(kind)
        if refs:
            return template.format(identifier=refs[0].identifier)
    return NO_SOURCE_REASON


@dataclass
class PresentSoftware:
    """What a fresh collection pass found on this machine."""

    keys: set[IdentityKey] = field(default_factory=set)
    sources: set[tuple[SourceKind, str]] = field(default_factory=set)

    @classmethod
    def from_records(cls, records: Iterable[SoftwareRecord]) -> PresentSoftware:
        present = cls()
        for record in records:
            if record.name:
                present.keys.add(normalize(record.name, record.version))
            for ref in record.source_info:
                if ref.kind in INSTALL_ADAPTERS:
                    present.sources.add((ref.kind, ref.identifier.lower()))
        return present

    def contains(self, entry: MergedEntry) -> bool:
        if entry.key in self.keys:
            return True
        return any(
            (ref.kind, ref.identifier.lower()) in self.sources
            for ref in entry.source_info
            if ref.kind in INSTALL_ADAPTERS
        )


# ── Planner ─────────────────────────────────────────────────────


class InstallPlanner:
    """Drive best-effort reinstallation of a snapshot, one entry at a time.

    Args:
        registry: Dispatches install actions to adapters.
        install_timeout: Seconds allowed per install attempt.
        renamed_packages: Old identifier → replacement identifier.
        present: Software already on this machine. None means no
            pre-check: every entry is attempted and the package manager
            decides what an already-installed package means.
        dry_run: Validate the first candidate of each entry, install nothing.
        cancel_event: Once set, no further entry is started.
        on_progress: Called with each item after it is reconciled.
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        install_timeout: int = 1800,
        renamed_packages: dict[str, str] | None = None,
        present: PresentSoftware | None = None,
        dry_run: bool = False,
        cancel_event: threading.Event | None = None,
        on_progress: Callable[[InstallPlanItem], None] | None = None,
    ):
        self._registry = registry
        self._timeout = install_timeout
        self._renames = dict(renamed_packages or {})
        self._present = present
        self._dry_run = dry_run
        self._cancel = cancel_event or threading.Event()
        self._on_progress = on_progress

    def plan(self, snapshot: InventorySnapshot) -> list[InstallPlanItem]:
        """One pending item per snapshot entry, with its ordered candidates."""
        return [
            InstallPlanItem(entry=entry, candidates=candidates_for(entry, self._renames))
            for entry in snapshot.entries
        ]

    def run(self, snapshot: InventorySnapshot, operation_id: str = "") -> ReconcileReport:
        """Reconcile every entry of the snapshot sequentially."""
        report = ReconcileReport(operation_id=operation_id, dry_run=self._dry_run)
        report.items = self.plan(snapshot)

        for index, item in enumerate(report.items):
            if self._cancel.is_set():
                item.state = PlanState.CANCELLED
                continue

            try:
                self._reconcile(item, f"{operation_id}:{index}")
            except Exception as e:
                logger.error("Reconciling %s failed unexpectedly: %s", item.entry.name, e)
                item.state = PlanState.EXHAUSTED
                item.follow_up = ManualFollowUp(
                    name=item.entry.name,
                    reason=FAILED_REASON.format(attempts=f"error: {e}"),
                )

            if self._on_progress:
                self._on_progress(item)

        if report.cancelled:
            logger.warning("Run cancelled: %d entries not started", report.cancelled)
        return report

    def _reconcile(self, item: InstallPlanItem, action_prefix: str) -> None:
        entry = item.entry

        if self._present is not None and self._present.contains(entry):
            item.state = PlanState.SKIPPED
            logger.info("= %s already present — skipped", entry.name)
            return

        if not item.candidates:
            item.state = PlanState.EXHAUSTED
            item.follow_up = ManualFollowUp(name=entry.name, reason=manual_reason(entry))
            logger.info("? %s: %s", entry.name, item.follow_up.reason)
            return

        pending = deque(item.candidates)
        while pending:
            candidate = pending.popleft()
            item.state = PlanState.ATTEMPTING
            receipt = self._attempt(entry, candidate, f"{action_prefix}:{len(item.attempts)}")
            item.attempts.append(InstallAttempt(candidate=candidate, receipt=receipt))

            if receipt.ok:
                item.state = PlanState.INSTALLED
                logger.info("✓ %s installed via %s", entry.name, candidate.label)
                return
            if receipt.status == "skipped" and self._dry_run:
                item.state = PlanState.PLANNED
                return

            logger.info("✗ %s via %s: %s", entry.name, candidate.label, receipt.error or receipt.output)

        item.state = PlanState.EXHAUSTED
        tried = ", ".join(a.candidate.label for a in item.attempts)
        item.follow_up = ManualFollowUp(
            name=entry.name,
            reason=FAILED_REASON.format(attempts=tried),
        )

    def _attempt(self, entry: MergedEntry, candidate: Candidate, action_id: str) -> Receipt:
        action = Action(
            id=action_id,
            name=entry.name,
            adapter=candidate.adapter,
            for_entry=str(entry.key),
            params={
                "identifier": candidate.identifier,
                "origin": candidate.source.origin,
            },
        )
        try:
            return self._registry.execute_action(
                action,
                dry_run=self._dry_run,
                timeout=self._timeout,
            )
        except Exception as e:
            logger.error("Install dispatch for %s raised: %s", entry.name, e)
            return Receipt.failure(
                adapter=candidate.adapter,
                action_id=action_id,
                error=f"Unexpected error: {e}",
            )
