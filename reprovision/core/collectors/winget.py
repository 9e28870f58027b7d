"""
Winget collector — packages winget reports as installed, per source channel.

Each channel (``winget``, ``msstore``, ...) is queried on its own through
the Microsoft.WinGet.Client PowerShell module, whose objects serialize to
JSON. One channel failing never costs the others their results.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
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
from reprovision.core.models.inventory import SoftwareRecord, SourceKind, SourceReference

logger = logging.getLogger(__name__)

DEFAULT_CHANNELS = ("winget", "msstore")

_LIST_SCRIPT = (
    "$ErrorActionPreference = 'Stop'; "
    "Get-WinGetPackage -Source '{channel}' | "
    "Select-Object Name, Id, InstalledVersion, Source | "
    "ConvertTo-Json -Depth 3 -Compress"
)


class PackageListError(Exception):
    """A package listing could not be produced or parsed."""


def parse_package_list(output: str) -> list[dict[str, Any]]:
    """Parse ConvertTo-Json output: one object, an array, or nothing.

    Raises:
        PackageListError: If the output is not JSON objects.
    """
    output = output.strip().lstrip("\ufeff")
    if not output:
        return []
    try:
        data = json.loads(output)
    except json.JSONDecodeError as e:
        raise PackageListError(f"unparseable output: {e}") from e

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise PackageListError(f"expected JSON object or array, got {type(data).__name__}")
    return [item for item in data if isinstance(item, dict)]


class WingetCollector(Collector):
    """Installed packages per winget source channel."""

    def __init__(
        self,
        channels: list[str] | tuple[str, ...] = DEFAULT_CHANNELS,
        runner: Runner | None = None,
        timeout: int = 120,
    ):
        self._channels = list(channels)
        self._runner = runner or run_command
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "winget"

    @property
    def kind(self) -> SourceKind:
        return SourceKind.WINGET

    @property
    def channels(self) -> list[str]:
        return list(self._channels)

    def is_available(self) -> bool:
        return shutil.which("winget") is not None and powershell_executable() is not None

    def _query_channel(self, channel: str) -> list[dict[str, Any]]:
        shell = powershell_executable() or "powershell"
        script = _LIST_SCRIPT.format(channel=channel.replace("'", "''"))
        try:
            result = self._runner(powershell_command(shell, script), self._timeout)
        except subprocess.TimeoutExpired as e:
            raise PackageListError(f"timed out after {self._timeout}s") from e
        except OSError as e:
            raise PackageListError(str(e)) from e

        if result.returncode != 0:
            detail = (result.stderr or "").strip().splitlines()
            raise PackageListError(
                detail[0] if detail else f"exit code {result.returncode}"
            )
        return parse_package_list(result.stdout or "")

    def _records(self) -> Iterator[SoftwareRecord]:
        for channel in self._channels:
            try:
                packages = self._query_channel(channel)
            except PackageListError as e:
                logger.warning("winget channel %r skipped: %s", channel, e)
                continue

            logger.debug("winget channel %r listed %d package(s)", channel, len(packages))
            for package in packages:
                record = self._to_record(package, channel)
                if record is not None:
                    yield record

    def _to_record(self, package: dict[str, Any], channel: str) -> SoftwareRecord | None:
        package_id = str(package.get("Id") or "").strip()
        if not package_id:
            logger.debug("winget %r item without Id skipped: %r", channel, package)
            return None

        version = package.get("InstalledVersion")
        try:
            return SoftwareRecord(
                name=str(package.get("Name") or package_id).strip(),
                version=str(version).strip() if version else None,
                source_info=[
                    SourceReference(kind=self.kind, identifier=package_id, origin=channel)
                ],
            )
        except ValidationError as e:
            logger.warning("Skipping winget package %r: %s", package_id, e)
            return None
