"""
Snapshot persistence — atomic read/write for InventorySnapshot.

The snapshot is the only interchange format between the export run
(source machine) and the reinstall run (target machine). It is written
as JSON with a schema version. Writes are atomic (write to temp file,
then rename) so a crash or a full disk never leaves a half-written file
that looks valid.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from reprovision.core.models.inventory import (
    SNAPSHOT_SCHEMA_VERSION,
    InventorySnapshot,
    MergedEntry,
)

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_FILE = "inventory.json"


class PersistenceError(Exception):
    """Raised when an output file cannot be written."""

    def __init__(self, path: Path, message: str):
        self.path = path
        super().__init__(f"Cannot write {path}: {message}")


class SnapshotError(Exception):
    """Raised when a snapshot file cannot be read or understood."""


# ── Document conversion ─────────────────────────────────────────


def snapshot_to_document(snapshot: InventorySnapshot) -> dict[str, Any]:
    """Render a snapshot as a JSON-compatible document."""
    return {
        "schema_version": snapshot.schema_version,
        "captured_at": snapshot.captured_at,
        "machine": snapshot.machine,
        "entries": [
            entry.model_dump(mode="json", by_alias=True)
            for entry in snapshot.entries
        ],
    }


def snapshot_from_document(document: Any) -> InventorySnapshot:
    """Rebuild a snapshot from a parsed document.

    Accepts the versioned envelope written by ``snapshot_to_document``
    and, for older exports, a bare list of entries. A malformed entry is
    logged and skipped; a malformed envelope raises.

    Raises:
        SnapshotError: If the document shape or schema version is unusable.
    """
    if isinstance(document, list):
        envelope: dict[str, Any] = {"entries": document}
    elif isinstance(document, dict):
        envelope = dict(document)
    else:
        raise SnapshotError(
            f"Expected a JSON object or array, got {type(document).__name__}"
        )

    version = envelope.get("schema_version", SNAPSHOT_SCHEMA_VERSION)
    if not isinstance(version, int) or version > SNAPSHOT_SCHEMA_VERSION:
        raise SnapshotError(
            f"Unsupported snapshot schema version {version!r} "
            f"(this build reads up to {SNAPSHOT_SCHEMA_VERSION})"
        )

    raw_entries = envelope.get("entries") or []
    if not isinstance(raw_entries, list):
        raise SnapshotError("'entries' must be an array")

    entries: list[MergedEntry] = []
    for index, raw in enumerate(raw_entries):
        try:
            entries.append(MergedEntry.model_validate(raw))
        except ValidationError as e:
            logger.warning("Skipping malformed snapshot entry #%d: %s", index, e)

    fields: dict[str, Any] = {"schema_version": version, "entries": entries}
    for key in ("captured_at", "machine"):
        if envelope.get(key) is not None:
            fields[key] = envelope[key]
    try:
        return InventorySnapshot(**fields)
    except ValidationError as e:
        raise SnapshotError(f"Invalid snapshot metadata: {e}") from e


# ── File I/O ────────────────────────────────────────────────────


def atomic_write_text(path: Path, content: str, prefix: str = ".reprovision_") -> None:
    """Write text to ``path`` via a temp file in the same directory.

    Raises:
        PersistenceError: On any failure; the temp file is removed.
    """
    tmp: Path | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=prefix, suffix=".tmp")
        tmp = Path(tmp_path)
        with open(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
        tmp.replace(path)
    except OSError as e:
        if tmp is not None:
            tmp.unlink(missing_ok=True)
        logger.error("Failed to write %s: %s", path, e)
        raise PersistenceError(path, e.strerror or str(e)) from e


def save_snapshot(snapshot: InventorySnapshot, path: Path) -> None:
    """Save a snapshot as JSON (atomic write)."""
    document = snapshot_to_document(snapshot)
    content = json.dumps(document, indent=2, ensure_ascii=False) + "\n"
    atomic_write_text(path, content, prefix=".snapshot_")
    logger.debug("Snapshot saved to %s (%d entries)", path, snapshot.total)


def load_snapshot(path: Path) -> InventorySnapshot:
    """Load a snapshot from a JSON file.

    Raises:
        SnapshotError: If the file is missing, unreadable or not a snapshot.
    """
    if not path.is_file():
        raise SnapshotError(f"Snapshot file not found: {path}")

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SnapshotError(f"Cannot read {path}: {e}") from e

    try:
        document = json.loads(raw)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Invalid JSON in {path}: {e}") from e

    snapshot = snapshot_from_document(document)
    logger.debug("Loaded snapshot from %s (%d entries)", path, snapshot.total)
    return snapshot
