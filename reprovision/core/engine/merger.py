"""
Inventory merger — fold raw records into deduplicated entries.

Flow:
    records → normalize identity → insert or absorb → sort → snapshot

The merge mapping is owned by a single ``merge_records`` call. Collectors
may run concurrently, but they hand their finished lists to one
single-threaded fold.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pydantic import ValidationError

from reprovision.core.models.inventory import (
    IdentityKey,
    InventorySnapshot,
    MergedEntry,
    SoftwareRecord,
    normalize,
)

__all__ = ["build_snapshot", "merge_records", "normalize"]

logger = logging.getLogger(__name__)


def _sort_key(entry: MergedEntry) -> tuple[str, str]:
    return entry.name.lower(), (entry.version or "").lower()


def merge_records(records: Iterable[SoftwareRecord]) -> dict[IdentityKey, MergedEntry]:
    """Fold records into a mapping of identity key to merged entry.

    Records without a name, or that fail entry validation, are dropped
    one at a time without affecting the rest. The first record seen for a key
    seeds the entry; later ones only add new source references and fill
    optional fields that are still empty.

    Returns:
        Mapping ordered by (name, version), case-insensitive.
    """
    merged: dict[IdentityKey, MergedEntry] = {}
    dropped = 0

    for record in records:
        if not record.name or not record.name.strip():
            dropped += 1
            continue

        key = normalize(record.name, record.version)
        existing = merged.get(key)
        if existing is None:
            try:
                merged[key] = MergedEntry.from_record(record)
            except ValidationError as e:
                logger.warning("Dropping unusable record %r: %s", record.name, e)
                dropped += 1
        else:
            existing.absorb(record)

    if dropped:
        logger.debug("Dropped %d record(s) without a usable display name", dropped)

    ordered = sorted(merged.items(), key=lambda item: _sort_key(item[1]))
    return dict(ordered)


def build_snapshot(
    records: Iterable[SoftwareRecord],
    machine: str | None = None,
) -> InventorySnapshot:
    """Merge records and wrap the result in a timestamped snapshot."""
    merged = merge_records(records)
    snapshot = InventorySnapshot(entries=list(merged.values()))
    if machine:
        snapshot.machine = machine

    logger.info("Merged inventory: %d entries", snapshot.total)
    return snapshot
