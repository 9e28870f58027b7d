"""
Tests for the installer planner — fallback order, manual follow-ups,
timeouts, cancellation, renames, pre-check and dry run.
"""

import subprocess
import threading

from conftest import entry, ref
from reprovision.adapters.mock import MockAdapter
from reprovision.adapters.packages.winget import WingetAdapter
from reprovision.adapters.registry import AdapterRegistry
from reprovision.core.engine.planner import (
    InstallPlanner,
    PlanState,
    PresentSoftware,
    ReconcileReport,
    candidates_for,
    generate_operation_id,
    manual_reason,
)
from reprovision.core.models.action import Receipt
from reprovision.core.models.inventory import InventorySnapshot, SoftwareRecord, SourceKind


def _registry() -> tuple[AdapterRegistry, MockAdapter, MockAdapter]:
    registry = AdapterRegistry()
    winget = MockAdapter(adapter_name="winget")
    choco = MockAdapter(adapter_name="chocolatey")
    registry.register(winget)
    registry.register(choco)
    return registry, winget, choco


def _snapshot(*entries) -> InventorySnapshot:
    return InventorySnapshot(entries=list(entries))


GIT = entry(
    "Git",
    ref(SourceKind.REGISTRY, "Git_is1"),
    ref(SourceKind.CHOCOLATEY, "git"),
    ref(SourceKind.WINGET, "Git.Git", "winget"),
    version="2.44.0",
)
CALC = entry("Windows Calculator", ref(SourceKind.APPX, "Microsoft.WindowsCalculator_11_x64"))
LEGACY = entry("Legacy Tool", ref(SourceKind.REGISTRY, "{0F3C-LEGACY}"))


# ── Candidate selection ──────────────────────────────────────────────


class TestCandidates:
    def test_winget_before_chocolatey(self):
        candidates = candidates_for(GIT)
        assert [(c.adapter, c.identifier) for c in candidates] == [
            ("winget", "Git.Git"),
            ("chocolatey", "git"),
        ]

    def test_winget_channels_in_discovery_order(self):
        e = entry(
            "App",
            ref(SourceKind.WINGET, "9NAPP", "msstore"),
            ref(SourceKind.WINGET, "Vendor.App", "winget"),
        )
        assert [c.source.origin for c in candidates_for(e)] == ["msstore", "winget"]

    def test_appx_and_registry_are_never_candidates(self):
        assert candidates_for(CALC) == []
        assert candidates_for(LEGACY) == []

    def test_rename_applied(self):
        (candidate,) = candidates_for(
            entry("Old", ref(SourceKind.WINGET, "Old.Id", "winget")),
            {"Old.Id": "New.Id"},
        )
        assert candidate.identifier == "New.Id"
        assert candidate.renamed
        assert candidate.label == "winget:New.Id (was Old.Id)"

    def test_manual_reasons(self):
        assert "Microsoft Store" in manual_reason(CALC)
        assert "Microsoft.WindowsCalculator_11_x64" in manual_reason(CALC)
        assert "Registry-only" in manual_reason(LEGACY)


# ── Reconciliation ───────────────────────────────────────────────────


class TestInstallPlanner:
    def test_first_success_stops_the_chain(self):
        registry, winget, choco = _registry()
        report = InstallPlanner(registry).run(_snapshot(GIT), operation_id="op-1")

        (item,) = report.items
        assert item.state == PlanState.INSTALLED
        assert winget.installed == ["Git.Git"]
        assert choco.call_count == 0
        assert item.installed_by.adapter == "winget"
        assert report.counts()["installed"] == 1
        assert report.status == "ok"

    def test_falls_back_to_next_candidate(self):
        registry, winget, choco = _registry()
        winget.set_failure("Git.Git", error="No package found matching input criteria.")
        report = InstallPlanner(registry).run(_snapshot(GIT))

        (item,) = report.items
        assert item.state == PlanState.INSTALLED
        assert [a.candidate.adapter for a in item.attempts] == ["winget", "chocolatey"]
        assert choco.installed == ["git"]
        assert item.follow_up is None

    def test_raising_adapter_advances(self):
        registry, winget, choco = _registry()
        winget.set_raises("Git.Git", RuntimeError("adapter bug"))
        report = InstallPlanner(registry).run(_snapshot(GIT))
        assert report.items[0].state == PlanState.INSTALLED
        assert report.items[0].attempts[0].receipt.failed

    def test_skip_receipt_outside_dry_run_advances(self):
        registry, winget, choco = _registry()
        winget.set_response("Git.Git", Receipt.skip(adapter="winget", action_id="x", reason="not applicable"))
        report = InstallPlanner(registry).run(_snapshot(GIT))

        (item,) = report.items
        assert item.state == PlanState.INSTALLED
        assert [a.receipt.status for a in item.attempts] == ["skipped", "ok"]
        assert choco.installed == ["git"]

    def test_skip_receipts_only_exhaust(self):
        registry, winget, choco = _registry()
        winget.set_response("Git.Git", Receipt.skip(adapter="winget", action_id="x"))
        choco.set_response("git", Receipt.skip(adapter="chocolatey", action_id="y"))
        report = InstallPlanner(registry).run(_snapshot(GIT))

        (item,) = report.items
        assert item.state == PlanState.EXHAUSTED
        assert item.follow_up is not None
        assert report.planned == 0

    def test_all_candidates_fail(self):
        registry, winget, choco = _registry()
        winget.set_failure("Git.Git")
        choco.set_failure("git")
        report = InstallPlanner(registry).run(_snapshot(GIT))

        (item,) = report.items
        assert item.state == PlanState.EXHAUSTED
        assert len(item.attempts) == 2
        assert "reinstall manually" in item.follow_up.reason
        assert "winget:Git.Git" in item.follow_up.reason
        assert report.failed == 1
        assert report.manual == 1
        assert report.status == "failed"

    def test_store_app_goes_to_follow_up_without_attempt(self):
        registry, winget, choco = _registry()
        report = InstallPlanner(registry).run(_snapshot(CALC))

        (item,) = report.items
        assert item.state == PlanState.EXHAUSTED
        assert item.attempts == []
        assert "Microsoft Store" in item.follow_up.reason
        assert winget.call_count == choco.call_count == 0
        assert report.failed == 0
        assert report.manual == 1
        assert report.status == "ok"

    def test_registry_only_goes_to_follow_up(self):
        registry, winget, _ = _registry()
        report = InstallPlanner(registry).run(_snapshot(LEGACY))
        assert report.follow_ups[0].name == "Legacy Tool"
        assert "Registry-only" in report.follow_ups[0].reason
        assert winget.call_count == 0

    def test_partial_status(self):
        registry, winget, choco = _registry()
        other = entry("Zoom", ref(SourceKind.WINGET, "Zoom.Zoom", "winget"))
        winget.set_failure("Zoom.Zoom")
        report = InstallPlanner(registry).run(_snapshot(GIT, other))
        assert report.installed == 1
        assert report.failed == 1
        assert report.status == "partial"

    def test_one_entry_failure_does_not_stop_the_run(self):
        registry, winget, _ = _registry()
        zoom = entry("Zoom", ref(SourceKind.WINGET, "Zoom.Zoom", "winget"))
        winget.set_failure("Git.Git")
        registry.get("chocolatey").set_failure("git")
        report = InstallPlanner(registry).run(_snapshot(GIT, CALC, zoom))
        assert [i.state for i in report.items] == [
            PlanState.EXHAUSTED, PlanState.EXHAUSTED, PlanState.INSTALLED,
        ]

    def test_timeout_advances_to_next_candidate(self):
        calls = []

        def runner(args, timeout):
            calls.append((args[0], timeout))
            raise subprocess.TimeoutExpired(args, timeout)

        registry, _, choco = _registry()
        registry.register(WingetAdapter(runner=runner))
        report = InstallPlanner(registry, install_timeout=5).run(_snapshot(GIT))

        (item,) = report.items
        assert calls == [("winget", 5)]
        assert item.attempts[0].receipt.error == "Install timed out after 5s"
        assert item.state == PlanState.INSTALLED
        assert choco.installed == ["git"]

    def test_installs_are_sequential_and_in_snapshot_order(self):
        registry, winget, _ = _registry()
        entries = [entry(f"App{i}", ref(SourceKind.WINGET, f"Vendor.App{i}", "winget")) for i in range(5)]
        InstallPlanner(registry).run(_snapshot(*entries))
        assert winget.installed == [f"Vendor.App{i}" for i in range(5)]

    def test_action_ids_carry_operation(self):
        registry, winget, _ = _registry()
        InstallPlanner(registry).run(_snapshot(GIT), operation_id="op-x")
        assert winget.call_log[0].action.id == "op-x:0:0"
        assert winget.call_log[0].action.for_entry == "git@2.44.0"

    def test_progress_callback(self):
        registry, _, _ = _registry()
        seen = []
        InstallPlanner(registry, on_progress=lambda item: seen.append(item.entry.name)).run(
            _snapshot(GIT, CALC)
        )
        assert seen == ["Git", "Windows Calculator"]


class TestCancellation:
    def test_cancel_before_start(self):
        registry, winget, _ = _registry()
        cancel = threading.Event()
        cancel.set()
        report = InstallPlanner(registry, cancel_event=cancel).run(_snapshot(GIT, CALC))
        assert [i.state for i in report.items] == [PlanState.CANCELLED, PlanState.CANCELLED]
        assert winget.call_count == 0
        assert report.cancelled == 2

    def test_in_flight_install_finishes_remaining_cancelled(self):
        cancel = threading.Event()
        registry, _, _ = _registry()

        class CancellingAdapter(MockAdapter):
            def execute(self, context):
                cancel.set()  # Ctrl+C arrives during the first install
                return super().execute(context)

        adapter = CancellingAdapter(adapter_name="winget")
        registry.register(adapter)
        zoom = entry("Zoom", ref(SourceKind.WINGET, "Zoom.Zoom", "winget"))
        report = InstallPlanner(registry, cancel_event=cancel).run(_snapshot(GIT, zoom))

        assert report.items[0].state == PlanState.INSTALLED
        assert report.items[1].state == PlanState.CANCELLED
        assert adapter.installed == ["Git.Git"]


class TestRenamedPackages:
    def test_renamed_identifier_used_and_counted(self):
        registry, winget, _ = _registry()
        old = entry("Terminal", ref(SourceKind.WINGET, "Microsoft.WindowsTerminalPreview", "winget"))
        report = InstallPlanner(
            registry,
            renamed_packages={"Microsoft.WindowsTerminalPreview": "Microsoft.WindowsTerminal"},
        ).run(_snapshot(old, GIT))

        assert winget.installed == ["Microsoft.WindowsTerminal", "Git.Git"]
        assert report.renamed == 1
        assert report.installed == 2
        attempt = report.items[0].attempts[0].to_dict()
        assert attempt["renamed_from"] == "Microsoft.WindowsTerminalPreview"


class TestPreCheck:
    def test_without_pre_check_present_software_is_attempted(self):
        registry, winget, _ = _registry()
        report = InstallPlanner(registry, present=None).run(_snapshot(GIT))
        assert report.items[0].state == PlanState.INSTALLED
        assert winget.call_count == 1

    def test_with_pre_check_present_software_is_skipped(self):
        registry, winget, _ = _registry()
        present = PresentSoftware.from_records([
            SoftwareRecord(name="git", version="2.44.0", source_info=[ref(SourceKind.REGISTRY, "x")]),
        ])
        report = InstallPlanner(registry, present=present).run(_snapshot(GIT))
        assert report.items[0].state == PlanState.SKIPPED
        assert winget.call_count == 0
        assert report.skipped == 1

    def test_pre_check_matches_package_id_across_versions(self):
        present = PresentSoftware.from_records([
            SoftwareRecord(name="Git", version="2.45.1", source_info=[ref(SourceKind.WINGET, "git.git", "winget")]),
        ])
        assert present.contains(GIT)

    def test_pre_check_ignores_registry_and_appx_ids(self):
        present = PresentSoftware.from_records([
            SoftwareRecord(name="Something else", source_info=[ref(SourceKind.REGISTRY, "{0F3C-LEGACY}")]),
        ])
        assert not present.contains(LEGACY)

    def test_absent_software_still_installed(self):
        registry, winget, _ = _registry()
        present = PresentSoftware.from_records([
            SoftwareRecord(name="Zoom", source_info=[ref(SourceKind.WINGET, "Zoom.Zoom", "winget")]),
        ])
        report = InstallPlanner(registry, present=present).run(_snapshot(GIT))
        assert report.items[0].state == PlanState.INSTALLED


class TestDryRun:
    def test_dry_run_plans_without_installing(self):
        registry, winget, choco = _registry()
        report = InstallPlanner(registry, dry_run=True).run(_snapshot(GIT, CALC))
        assert report.items[0].state == PlanState.PLANNED
        assert len(report.items[0].attempts) == 1
        assert report.items[1].state == PlanState.EXHAUSTED
        assert winget.call_count == choco.call_count == 0
        assert report.planned == 1
        assert report.dry_run is True

    def test_dry_run_in_mock_mode(self):
        report = InstallPlanner(AdapterRegistry(mock_mode=True), dry_run=True).run(_snapshot(GIT))
        assert report.items[0].state == PlanState.PLANNED


class TestReconcileReport:
    def test_to_dict(self):
        registry, _, _ = _registry()
        report = InstallPlanner(registry).run(_snapshot(GIT, CALC), operation_id="op-1")
        d = report.to_dict()
        assert d["operation_id"] == "op-1"
        assert d["total"] == 2
        assert d["counts"]["installed"] == 1
        assert d["counts"]["manual"] == 1
        assert d["items"][0]["state"] == "installed"
        assert d["follow_ups"][0]["name"] == "Windows Calculator"

    def test_empty_report(self):
        report = ReconcileReport()
        assert report.status == "ok"
        assert all(v == 0 for v in report.counts().values())

    def test_operation_id_format(self):
        op = generate_operation_id()
        assert op.startswith("op-")
        assert op != generate_operation_id()
