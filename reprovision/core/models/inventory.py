"""
Inventory models — what was observed, and where it was observed.

A ``SoftwareRecord`` is one sighting of a piece of software by one
collector. A ``MergedEntry`` is the deduplicated inventory unit built by
folding every sighting that shares an ``IdentityKey``. An
``InventorySnapshot`` is the only long-lived artifact: it is written once
per export and read back once per reinstall run.
"""

from __future__ import annotations

import socket
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

SNAPSHOT_SCHEMA_VERSION = 1


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


def clean_text(value: str) -> str:
    """Replace unpaired UTF-16 surrogates with U+FFFD.

    Registry values and PowerShell output can carry lone surrogates,
    which cannot be encoded as UTF-8 and are rejected by strict fields.
    """
    return value.encode("utf-16", "surrogatepass").decode("utf-16", "replace")


class SourceKind(StrEnum):
    """Inventory source a record was collected from."""

    REGISTRY = "Registry"
    WINGET = "Winget"
    CHOCOLATEY = "Chocolatey"
    APPX = "Appx"


class SourceReference(BaseModel):
    """One provenance entry: which source saw the software, under which id.

    Frozen so references can be compared and hashed for deduplication.
    """

    model_config = ConfigDict(frozen=True)

    kind: SourceKind
    identifier: str = Field(min_length=1)
    origin: str | None = None

    @field_validator("identifier", "origin", mode="before")
    @classmethod
    def clean_strings(cls, value: Any) -> Any:
        if isinstance(value, str):
            return clean_text(value)
        return value

    @property
    def label(self) -> str:
        """Human-readable label, e.g. ``Winget:msstore`` or ``Registry``."""
        if self.origin:
            return f"{self.kind.value}:{self.origin}"
        return self.kind.value


@dataclass(frozen=True)
class IdentityKey:
    """Case-insensitive merge key for inventory records."""

    normalized_name: str
    normalized_version: str = ""

    def __str__(self) -> str:
        if self.normalized_version:
            return f"{self.normalized_name}@{self.normalized_version}"
        return self.normalized_name


def normalize(name: str, version: str | None = None) -> IdentityKey:
    """Build the case-insensitive identity key for a (name, version) pair."""
    return IdentityKey(
        normalized_name=name.lower(),
        normalized_version=version.lower() if version else "",
    )


class SoftwareRecord(BaseModel):
    """A single installation observed by a single collector."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    version: str | None = None
    publisher: str | None = None
    source_info: list[SourceReference] = Field(alias="sourceInfo", min_length=1)
    notes: str | None = None

    @field_validator("name", "version", "publisher", "notes", mode="before")
    @classmethod
    def clean_strings(cls, value: Any) -> Any:
        if isinstance(value, str):
            return clean_text(value)
        return value


class MergedEntry(BaseModel):
    """Deduplicated inventory unit.

    Optional fields follow first-seen precedence: once a value is set it is
    never overwritten by a later record. ``source_info`` behaves as an
    insertion-ordered set keyed by ``(kind, identifier, origin)``.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    version: str | None = None
    publisher: str | None = None
    source_info: list[SourceReference] = Field(alias="sourceInfo", min_length=1)
    notes: str | None = None

    @classmethod
    def from_record(cls, record: SoftwareRecord) -> MergedEntry:
        """Seed a new entry from the first record seen for its key."""
        entry = cls(
            name=record.name,
            version=record.version or None,
            publisher=record.publisher or None,
            source_info=[record.source_info[0]],
            notes=record.notes or None,
        )
        for ref in record.source_info[1:]:
            entry.add_source(ref)
        return entry

    @property
    def key(self) -> IdentityKey:
        return normalize(self.name, self.version)

    @property
    def source_labels(self) -> list[str]:
        return [ref.label for ref in self.source_info]

    def add_source(self, ref: SourceReference) -> bool:
        """Append a reference unless an identical one is already present.

        Returns:
            True if the reference was appended.
        """
        if ref in self.source_info:
            return False
        self.source_info.append(ref)
        return True

    def absorb(self, record: SoftwareRecord) -> None:
        """Fold another record with the same identity key into this entry."""
        for ref in record.source_info:
            self.add_source(ref)
        if not self.version and record.version:
            self.version = record.version
        if not self.publisher and record.publisher:
            self.publisher = record.publisher
        if not self.notes and record.notes:
            self.notes = record.notes

    def sources_of(self, kind: SourceKind) -> list[SourceReference]:
        """References of one kind, in discovery order."""
        return [ref for ref in self.source_info if ref.kind == kind]


class InventorySnapshot(BaseModel):
    """Point-in-time export of one machine's merged inventory."""

    schema_version: int = SNAPSHOT_SCHEMA_VERSION
    captured_at: str = Field(default_factory=_now_iso)
    machine: str = Field(default_factory=socket.gethostname)
    entries: list[MergedEntry] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.entries)

    def count_by_kind(self) -> dict[str, int]:
        """Number of entries each source kind contributed to."""
        counts: dict[str, int] = {kind.value: 0 for kind in SourceKind}
        for entry in self.entries:
            for kind in {ref.kind for ref in entry.source_info}:
                counts[kind.value] += 1
        return counts
