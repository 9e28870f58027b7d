"""
Chocolatey collector — packages in choco's local ``lib`` cache.

Every installed package has a directory under ``<root>/lib`` that
normally carries the package's ``.nuspec``. The nuspec gives the real
id, version and authors; without one the directory name is all we know.
"""

from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from reprovision.core.collectors.base import Collector
from reprovision.core.models.inventory import SoftwareRecord, SourceKind, SourceReference

logger = logging.getLogger(__name__)

DEFAULT_CHOCOLATEY_ROOT = r"C:\ProgramData\chocolatey"


@dataclass
class NuspecMetadata:
    """The handful of nuspec fields the inventory cares about."""

    id: str
    version: str | None = None
    authors: str | None = None
    title: str | None = None


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def read_nuspec(path: Path) -> NuspecMetadata | None:
    """Parse a nuspec file, ignoring XML namespaces.

    Returns:
        Metadata, or None if the file is unreadable, corrupt or has no id.
    """
    try:
        tree = ET.parse(path)
    except (ET.ParseError, OSError) as e:
        logger.warning("Unreadable nuspec %s: %s", path, e)
        return None

    metadata = next(
        (el for el in tree.getroot().iter() if _local_name(el.tag) == "metadata"),
        None,
    )
    if metadata is None:
        return None

    fields: dict[str, str] = {}
    for child in metadata:
        text = (child.text or "").strip()
        if text:
            fields[_local_name(child.tag)] = text

    if not fields.get("id"):
        return None
    return NuspecMetadata(
        id=fields["id"],
        version=fields.get("version"),
        authors=fields.get("authors"),
        title=fields.get("title"),
    )


def resolve_chocolatey_root(configured: str | None = None) -> Path:
    """Configured root, else ``$ChocolateyInstall``, else the default path."""
    return Path(configured or os.environ.get("ChocolateyInstall") or DEFAULT_CHOCOLATEY_ROOT)


class ChocolateyCollector(Collector):
    """Packages installed through Chocolatey."""

    def __init__(self, root: Path | str | None = None):
        self._root = resolve_chocolatey_root(str(root) if root else None)

    @property
    def name(self) -> str:
        return "chocolatey"

    @property
    def kind(self) -> SourceKind:
        return SourceKind.CHOCOLATEY

    @property
    def lib_dir(self) -> Path:
        return self._root / "lib"

    def is_available(self) -> bool:
        return self.lib_dir.is_dir()

    def _find_nuspec(self, package_dir: Path) -> Path | None:
        preferred = package_dir / f"{package_dir.name}.nuspec"
        if preferred.is_file():
            return preferred
        return next(iter(sorted(package_dir.glob("*.nuspec"))), None)

    def _records(self) -> Iterator[SoftwareRecord]:
        try:
            package_dirs = sorted(p for p in self.lib_dir.iterdir() if p.is_dir())
        except OSError as e:
            logger.warning("Cannot list %s: %s", self.lib_dir, e)
            return

        for package_dir in package_dirs:
            if package_dir.name.startswith("."):
                continue

            nuspec_path = self._find_nuspec(package_dir)
            meta = read_nuspec(nuspec_path) if nuspec_path else None
            if meta is None:
                logger.debug("No usable nuspec in %s — using directory name", package_dir)
                meta = NuspecMetadata(id=package_dir.name)

            try:
                yield SoftwareRecord(
                    name=meta.title or meta.id,
                    version=meta.version,
                    publisher=meta.authors,
                    source_info=[SourceReference(kind=self.kind, identifier=meta.id)],
                    notes=str(package_dir),
                )
            except ValidationError as e:
                logger.warning("Skipping chocolatey package %s: %s", package_dir.name, e)
