"""
Tests for domain models — inventory records, entries, snapshots, settings.
"""

import pytest
from pydantic import ValidationError

from conftest import entry, ref
from reprovision.core.models.action import Receipt
from reprovision.core.models.inventory import (
    IdentityKey,
    InventorySnapshot,
    MergedEntry,
    SoftwareRecord,
    SourceKind,
    SourceReference,
    clean_text,
)
from reprovision.core.models.settings import Settings


class TestSourceReference:
    def test_label_with_origin(self):
        assert ref(SourceKind.WINGET, "Git.Git", "winget").label == "Winget:winget"

    def test_label_without_origin(self):
        assert ref(SourceKind.REGISTRY, "{ABC}").label == "Registry"

    def test_empty_identifier_rejected(self):
        with pytest.raises(ValidationError):
            SourceReference(kind=SourceKind.APPX, identifier="")

    def test_hashable_and_equal(self):
        a = ref(SourceKind.CHOCOLATEY, "git")
        b = ref(SourceKind.CHOCOLATEY, "git")
        assert a == b
        assert len({a, b}) == 1


class TestIdentityKey:
    def test_str_with_version(self):
        assert str(IdentityKey("git", "2.44.0")) == "git@2.44.0"

    def test_str_without_version(self):
        assert str(IdentityKey("git")) == "git"


class TestSoftwareRecord:
    def test_requires_a_source(self):
        with pytest.raises(ValidationError):
            SoftwareRecord(name="Git", source_info=[])

    def test_accepts_wire_alias(self):
        record = SoftwareRecord.model_validate({
            "name": "Git",
            "sourceInfo": [{"kind": "Chocolatey", "identifier": "git"}],
        })
        assert record.source_info[0].kind == SourceKind.CHOCOLATEY

    def test_lone_surrogates_replaced(self):
        record = SoftwareRecord(
            name="Bad\udc80Name",
            publisher="Vendor\ud800",
            source_info=[ref(SourceKind.REGISTRY, "key\udc80")],
        )
        assert record.name == "Bad\ufffdName"
        assert record.publisher == "Vendor\ufffd"
        assert record.source_info[0].identifier == "key\ufffd"
        assert MergedEntry.from_record(record).name == "Bad\ufffdName"


class TestCleanText:
    def test_valid_text_unchanged(self):
        assert clean_text("Visual Studio Code – Insiders") == "Visual Studio Code – Insiders"

    def test_surrogate_pair_kept(self):
        assert clean_text("\U0001f600 app") == "\U0001f600 app"

    def test_unpaired_surrogate_replaced(self):
        assert clean_text("a\udc80b") == "a\ufffdb"


class TestMergedEntry:
    def _record(self, **kwargs) -> SoftwareRecord:
        defaults = {"name": "Git", "source_info": [ref(SourceKind.REGISTRY, "Git_is1")]}
        defaults.update(kwargs)
        return SoftwareRecord(**defaults)

    def test_from_record_normalizes_empty_strings(self):
        e = MergedEntry.from_record(self._record(version="", publisher=""))
        assert e.version is None
        assert e.publisher is None

    def test_from_record_dedupes_sources(self):
        r = ref(SourceKind.REGISTRY, "Git_is1")
        e = MergedEntry.from_record(self._record(source_info=[r, r]))
        assert e.source_info == [r]

    def test_add_source_is_idempotent(self):
        e = entry("Git", ref(SourceKind.REGISTRY, "Git_is1"))
        assert e.add_source(ref(SourceKind.CHOCOLATEY, "git")) is True
        assert e.add_source(ref(SourceKind.CHOCOLATEY, "git")) is False
        assert len(e.source_info) == 2

    def test_same_identifier_different_origin_kept(self):
        e = entry("App", ref(SourceKind.WINGET, "App.Id", "winget"))
        assert e.add_source(ref(SourceKind.WINGET, "App.Id", "msstore")) is True

    def test_absorb_fills_only_empty_fields(self):
        e = MergedEntry.from_record(self._record(publisher="First"))
        e.absorb(self._record(
            publisher="Second",
            notes="C:\\Program Files\\Git",
            source_info=[ref(SourceKind.CHOCOLATEY, "git")],
        ))
        assert e.publisher == "First"
        assert e.notes == "C:\\Program Files\\Git"
        assert e.source_labels == ["Registry", "Chocolatey"]

    def test_sources_of_keeps_discovery_order(self):
        e = entry(
            "App",
            ref(SourceKind.WINGET, "App.Id", "msstore"),
            ref(SourceKind.REGISTRY, "App"),
            ref(SourceKind.WINGET, "App.Id", "winget"),
        )
        assert [r.origin for r in e.sources_of(SourceKind.WINGET)] == ["msstore", "winget"]

    def test_key_is_case_insensitive(self):
        assert entry("Git", ref(SourceKind.REGISTRY, "x"), version="2.44.0A").key == IdentityKey(
            "git", "2.44.0a"
        )


class TestInventorySnapshot:
    def test_defaults(self):
        snapshot = InventorySnapshot()
        assert snapshot.schema_version == 1
        assert snapshot.machine
        assert snapshot.captured_at
        assert snapshot.total == 0

    def test_count_by_kind_counts_entries_once(self):
        snapshot = InventorySnapshot(entries=[
            entry(
                "App",
                ref(SourceKind.WINGET, "App.Id", "winget"),
                ref(SourceKind.WINGET, "App.Id", "msstore"),
                ref(SourceKind.REGISTRY, "App"),
            ),
            entry("Tool", ref(SourceKind.CHOCOLATEY, "tool")),
        ])
        counts = snapshot.count_by_kind()
        assert counts == {"Registry": 1, "Winget": 1, "Chocolatey": 1, "Appx": 0}


class TestReceipt:
    def test_success(self):
        r = Receipt.success(adapter="winget", action_id="op:0:0", output="done")
        assert r.ok and not r.failed

    def test_failure(self):
        r = Receipt.failure(adapter="winget", action_id="op:0:0", error="boom")
        assert r.failed
        assert r.error == "boom"

    def test_skip(self):
        r = Receipt.skip(adapter="winget", action_id="op:0:0", reason="dry run")
        assert r.status == "skipped"
        assert r.output == "dry run"


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.sources.enabled_names() == ["registry", "winget", "chocolatey", "appx"]
        assert settings.sources.winget.channels == ["winget", "msstore"]
        assert settings.reinstall.skip_present is False
        assert settings.reinstall.install_timeout == 1800

    def test_disabled_source_excluded(self):
        settings = Settings.model_validate({"sources": {"appx": {"enabled": False}}})
        assert "appx" not in settings.sources.enabled_names()

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings.model_validate({"reinstall": {"install_timeout": 0}})

    def test_state_path_expands_user(self):
        assert "~" not in str(Settings().state_path)
