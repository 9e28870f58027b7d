"""
Tabular inventory report — for humans, never read back.
"""

from __future__ import annotations

import logging
from pathlib import Path

from reprovision.core.models.inventory import InventorySnapshot
from reprovision.core.persistence.snapshot_file import atomic_write_text

logger = logging.getLogger(__name__)

_COLUMNS = ("Name", "Version", "Source", "Publisher")
_MAX_WIDTH = 60


def _clip(value: str, width: int) -> str:
    if len(value) <= width:
        return value
    return value[: width - 1] + "…"


def render_report(snapshot: InventorySnapshot) -> str:
    """Render the snapshot as a fixed-width text table.

    Columns: name, version, comma-joined source labels, publisher.
    """
    rows = [
        (
            entry.name,
            entry.version or "",
            ", ".join(entry.source_labels),
            entry.publisher or "",
        )
        for entry in snapshot.entries
    ]

    widths = [len(title) for title in _COLUMNS]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = min(max(widths[i], len(cell)), _MAX_WIDTH)

    def _line(cells: tuple[str, ...]) -> str:
        padded = [_clip(cell, widths[i]).ljust(widths[i]) for i, cell in enumerate(cells)]
        return "  ".join(padded).rstrip()

    lines = [
        f"# Inventory of {snapshot.machine} captured {snapshot.captured_at}",
        _line(_COLUMNS),
        "  ".join("-" * w for w in widths),
    ]
    lines.extend(_line(row) for row in rows)
    lines.append("")
    lines.append(f"{snapshot.total} entries")
    return "\n".join(lines) + "\n"


def save_report(snapshot: InventorySnapshot, path: Path) -> None:
    """Write the text report (atomic write)."""
    atomic_write_text(path, render_report(snapshot), prefix=".report_")
    logger.debug("Report saved to %s", path)


def default_report_path(snapshot_path: Path) -> Path:
    """Report lives next to the snapshot: inventory.json → inventory.txt."""
    if snapshot_path.suffix.lower() == ".txt":
        return snapshot_path.with_name(snapshot_path.stem + ".report.txt")
    return snapshot_path.with_suffix(".txt")
