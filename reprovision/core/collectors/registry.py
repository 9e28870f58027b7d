"""
Registry collector — uninstall entries of classic Win32 programs.

Reads ``SOFTWARE\\Microsoft\\Windows\\CurrentVersion\\Uninstall`` in the
machine-wide and current-user hives, each through the 64-bit and the
32-bit registry view. Registry access sits behind ``RegistryReader`` so
the mapping logic runs anywhere; ``WinregReader`` is the real one.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any, Protocol

from pydantic import ValidationError

from reprovision.core.collectors.base import Collector
from reprovision.core.models.inventory import (
    SoftwareRecord,
    SourceKind,
    SourceReference,
    clean_text,
)

logger = logging.getLogger(__name__)

UNINSTALL_PATH = r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall"

_VALUE_NAMES = ("DisplayName", "DisplayVersion", "Publisher", "InstallLocation")


class RegistryReader(Protocol):
    """Read access to uninstall entries."""

    def available(self) -> bool: ...

    def uninstall_entries(self) -> Iterator[tuple[str, dict[str, Any]]]:
        """Yield (subkey name, values) for every uninstall subkey."""
        ...


def _load_winreg() -> Any:
    try:
        import winreg
    except ImportError:
        return None
    return winreg


class WinregReader:
    """RegistryReader backed by the ``winreg`` module (Windows only)."""

    def __init__(self) -> None:
        self._winreg = _load_winreg()

    def available(self) -> bool:
        return self._winreg is not None

    def _views(self) -> list[tuple[str, int, int]]:
        w = self._winreg
        return [
            ("HKLM", w.HKEY_LOCAL_MACHINE, w.KEY_WOW64_64KEY),
            ("HKLM", w.HKEY_LOCAL_MACHINE, w.KEY_WOW64_32KEY),
            ("HKCU", w.HKEY_CURRENT_USER, w.KEY_WOW64_64KEY),
            ("HKCU", w.HKEY_CURRENT_USER, w.KEY_WOW64_32KEY),
        ]

    def uninstall_entries(self) -> Iterator[tuple[str, dict[str, Any]]]:
        w = self._winreg
        for hive_name, hive, view in self._views():
            try:
                key = w.OpenKey(hive, UNINSTALL_PATH, 0, w.KEY_READ | view)
            except OSError:
                logger.debug("No uninstall key in %s (view %#x)", hive_name, view)
                continue

            with key:
                try:
                    subkey_count = w.QueryInfoKey(key)[0]
                except OSError as e:
                    logger.warning("Cannot enumerate %s uninstall key (view %#x): %s", hive_name, view, e)
                    continue
                for i in range(subkey_count):
                    try:
                        subkey_name = w.EnumKey(key, i)
                        with w.OpenKey(key, subkey_name, 0, w.KEY_READ | view) as subkey:
                            values = {
                                value_name: self._value(subkey, value_name)
                                for value_name in _VALUE_NAMES
                            }
                    except OSError as e:
                        logger.debug("Cannot read %s uninstall subkey #%d: %s", hive_name, i, e)
                        continue
                    yield subkey_name, values

    def _value(self, key: Any, value_name: str) -> Any:
        try:
            value, _type = self._winreg.QueryValueEx(key, value_name)
        except OSError:
            return None
        return value


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = clean_text(str(value)).strip()
    return text or None


class RegistryCollector(Collector):
    """Installed programs as listed in the uninstall registry keys."""

    def __init__(self, reader: RegistryReader | None = None):
        self._reader = reader or WinregReader()

    @property
    def name(self) -> str:
        return "registry"

    @property
    def kind(self) -> SourceKind:
        return SourceKind.REGISTRY

    def is_available(self) -> bool:
        return self._reader.available()

    def _records(self) -> Iterator[SoftwareRecord]:
        for subkey_name, values in self._reader.uninstall_entries():
            display_name = _text(values.get("DisplayName"))
            if not display_name:
                continue

            try:
                yield SoftwareRecord(
                    name=display_name,
                    version=_text(values.get("DisplayVersion")),
                    publisher=_text(values.get("Publisher")),
                    source_info=[SourceReference(kind=self.kind, identifier=subkey_name)],
                    notes=_text(values.get("InstallLocation")),
                )
            except ValidationError as e:
                logger.warning("Skipping registry entry %r: %s", subkey_name, e)
