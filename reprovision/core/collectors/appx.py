"""
Appx collector — sandboxed (Store / MSIX) app packages.

Framework packages (VCLibs, .NET Native runtimes, UI.Xaml, ...) are
dependencies, not applications, and are left out.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from collections.abc import Iterator
from typing import Any

from pydantic import ValidationError

from reprovision.adapters.shell.command import (
    Runner,
    powershell_command,
    powershell_executable,
    run_command,
)
from reprovision.core.collectors.base import Collector
from reprovision.core.collectors.winget import PackageListError, parse_package_list
from reprovision.core.models.inventory import SoftwareRecord, SourceKind, SourceReference

logger = logging.getLogger(__name__)

_LIST_SCRIPT = (
    "Get-AppxPackage | "
    "Select-Object Name, PackageFullName, Version, Publisher, InstallLocation, IsFramework | "
    "ConvertTo-Json -Depth 3 -Compress"
)


def clean_publisher(publisher: str | None) -> str | None:
    """``CN=Contoso, O=Contoso, C=US`` → ``Contoso``."""
    if not publisher:
        return None
    publisher = publisher.strip()
    if publisher.upper().startswith("CN="):
        publisher = publisher[3:].split(",")[0].strip()
    return publisher or None


class AppxCollector(Collector):
    """Installed Appx/MSIX packages for the current user."""

    def __init__(
        self,
        runner: Runner | None = None,
        timeout: int = 120,
        platform: str | None = None,
    ):
        self._runner = runner or run_command
        self._timeout = timeout
        self._platform = platform or sys.platform

    @property
    def name(self) -> str:
        return "appx"

    @property
    def kind(self) -> SourceKind:
        return SourceKind.APPX

    def is_available(self) -> bool:
        return self._platform == "win32" and powershell_executable() is not None

    def _list_packages(self) -> list[dict[str, Any]]:
        shell = powershell_executable() or "powershell"
        try:
            result = self._runner(powershell_command(shell, _LIST_SCRIPT), self._timeout)
        except subprocess.TimeoutExpired:
            logger.warning("Get-AppxPackage timed out after %ss", self._timeout)
            return []
        except OSError as e:
            logger.warning("Cannot run Get-AppxPackage: %s", e)
            return []

        if result.returncode != 0:
            logger.warning(
                "Get-AppxPackage failed (exit %d): %s",
                result.returncode,
                (result.stderr or "").strip()[:200],
            )
            return []

        try:
            return parse_package_list(result.stdout or "")
        except PackageListError as e:
            logger.warning("Get-AppxPackage output skipped: %s", e)
            return []

    def _records(self) -> Iterator[SoftwareRecord]:
        for package in self._list_packages():
            if package.get("IsFramework"):
                continue

            full_name = str(package.get("PackageFullName") or "").strip()
            name = str(package.get("Name") or "").strip()
            if not full_name or not name:
                logger.debug("Appx item without name skipped: %r", package)
                continue

            version = package.get("Version")
            try:
                yield SoftwareRecord(
                    name=name,
                    version=str(version).strip() if version else None,
                    publisher=clean_publisher(package.get("Publisher")),
                    source_info=[SourceReference(kind=self.kind, identifier=full_name)],
                    notes=str(package.get("InstallLocation") or "").strip() or None,
                )
            except ValidationError as e:
                logger.warning("Skipping Appx package %r: %s", full_name, e)
