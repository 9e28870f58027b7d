"""
Tests for the inventory merger — identity, folding, ordering.
"""

import random

from conftest import ref
from reprovision.core.engine.merger import build_snapshot, merge_records, normalize
from reprovision.core.models.inventory import IdentityKey, SoftwareRecord, SourceKind


def _rec(name, version=None, *refs, publisher=None, notes=None) -> SoftwareRecord:
    return SoftwareRecord(
        name=name,
        version=version,
        publisher=publisher,
        notes=notes,
        source_info=list(refs) or [ref(SourceKind.REGISTRY, f"{name}-key")],
    )


class TestNormalize:
    def test_lowercases_both_parts(self):
        assert normalize("Visual Studio Code", "1.88.0") == IdentityKey("visual studio code", "1.88.0")

    def test_missing_version_is_empty(self):
        assert normalize("Git") == normalize("git", "")

    def test_whitespace_is_significant(self):
        assert normalize("Git ") != normalize("Git")


class TestMergeRecords:
    def test_case_insensitive_identity_collapses(self):
        merged = merge_records([
            _rec("Git", "2.44.0", ref(SourceKind.REGISTRY, "Git_is1")),
            _rec("GIT", "2.44.0", ref(SourceKind.CHOCOLATEY, "git")),
        ])
        assert len(merged) == 1
        (e,) = merged.values()
        assert e.name == "Git"
        assert [r.kind for r in e.source_info] == [SourceKind.REGISTRY, SourceKind.CHOCOLATEY]

    def test_different_versions_stay_separate(self):
        merged = merge_records([
            _rec("Python", "3.11.9"),
            _rec("Python", "3.12.3"),
        ])
        assert len(merged) == 2

    def test_empty_names_dropped(self):
        merged = merge_records([_rec(""), _rec("   "), _rec("Git")])
        assert [e.name for e in merged.values()] == ["Git"]

    def test_unusable_record_dropped_alone(self):
        # Built without validation, so the name still holds a lone surrogate.
        bad = SoftwareRecord.model_construct(
            name="Bad\udc80Name",
            version=None,
            publisher=None,
            notes=None,
            source_info=[ref(SourceKind.REGISTRY, "bad-key")],
        )
        merged = merge_records([_rec("Fine"), bad, _rec("Git")])
        assert [e.name for e in merged.values()] == ["Fine", "Git"]

    def test_first_seen_publisher_wins(self):
        merged = merge_records([
            _rec("App", "1", ref(SourceKind.REGISTRY, "a")),
            _rec("App", "1", ref(SourceKind.WINGET, "A.App", "winget"), publisher="Late"),
            _rec("App", "1", ref(SourceKind.CHOCOLATEY, "app"), publisher="Later"),
        ])
        assert next(iter(merged.values())).publisher == "Late"

    def test_duplicate_references_not_repeated(self):
        r = ref(SourceKind.WINGET, "Git.Git", "winget")
        merged = merge_records([_rec("Git", "2", r), _rec("git", "2", r)])
        assert next(iter(merged.values())).source_info == [r]

    def test_ordered_by_name_then_version(self):
        merged = merge_records([
            _rec("zoom"),
            _rec("Audacity", "3.5"),
            _rec("audacity", "3.4"),
            _rec("Blender"),
        ])
        assert [(e.name, e.version) for e in merged.values()] == [
            ("audacity", "3.4"),
            ("Audacity", "3.5"),
            ("Blender", None),
            ("zoom", None),
        ]

    def test_idempotent(self):
        records = [
            _rec("Git", "2", ref(SourceKind.REGISTRY, "Git_is1")),
            _rec("git", "2", ref(SourceKind.CHOCOLATEY, "git")),
            _rec("7-Zip", "23.01"),
        ]
        once = merge_records(records)
        twice = merge_records(records + records)
        assert {k: e.source_info for k, e in once.items()} == {
            k: e.source_info for k, e in twice.items()
        }

    def test_source_sets_independent_of_record_order(self):
        records = [
            _rec("Git", "2", ref(SourceKind.REGISTRY, "Git_is1")),
            _rec("git", "2", ref(SourceKind.CHOCOLATEY, "git")),
            _rec("GIT", "2", ref(SourceKind.WINGET, "Git.Git", "winget")),
            _rec("Notepad++", "8.6"),
        ]
        baseline = {k: set(e.source_info) for k, e in merge_records(records).items()}
        shuffled = records[:]
        random.Random(7).shuffle(shuffled)
        assert {k: set(e.source_info) for k, e in merge_records(shuffled).items()} == baseline

    def test_keys_match_entries(self):
        merged = merge_records([_rec("Git", "2.44.0"), _rec("7-Zip")])
        for key, e in merged.items():
            assert e.key == key


class TestBuildSnapshot:
    def test_scenario_three_sources_one_entry(self):
        snapshot = build_snapshot(
            [
                _rec("Git", "2.44.0", ref(SourceKind.REGISTRY, "Git_is1"),
                     publisher="The Git Development Community"),
                _rec("git", "2.44.0", ref(SourceKind.WINGET, "Git.Git", "winget")),
                _rec("GIT", "2.44.0", ref(SourceKind.CHOCOLATEY, "git"),
                     notes=r"C:\ProgramData\chocolatey\lib\git"),
                _rec("Windows Calculator", "11.2401",
                     ref(SourceKind.APPX, "Microsoft.WindowsCalculator_11.2401_x64__8wekyb3d8bbwe")),
            ],
            machine="old-laptop",
        )
        assert snapshot.machine == "old-laptop"
        assert snapshot.total == 2
        git = snapshot.entries[0]
        assert git.name == "Git"
        assert git.publisher == "The Git Development Community"
        assert git.notes == r"C:\ProgramData\chocolatey\lib\git"
        assert git.source_labels == ["Registry", "Winget:winget", "Chocolatey"]

    def test_empty_input(self):
        assert build_snapshot([]).entries == []
