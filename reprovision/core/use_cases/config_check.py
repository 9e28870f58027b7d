"""
Config check use case — validate reprovision.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from reprovision.core.config.loader import (
    SETTINGS_FILE,
    ConfigError,
    find_settings_file,
    load_settings,
)
from reprovision.core.models.settings import Settings


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    settings: Settings | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "sources": self.settings.sources.enabled_names() if self.settings else [],
            "renamed_packages": len(self.settings.reinstall.renamed_packages) if self.settings else 0,
        }


def _rename_cycles(renames: dict[str, str]) -> list[str]:
    """Identifiers whose rename chain loops back on itself."""
    cyclic = []
    for start in renames:
        seen = {start}
        current = renames[start]
        while current in renames:
            if current in seen:
                cyclic.append(start)
                break
            seen.add(current)
            current = renames[current]
    return cyclic


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate settings and report issues.

    A missing settings file is not an error: the defaults apply.

    Args:
        config_path: Optional explicit path to reprovision.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_settings_file()
    result.config_path = config_path

    try:
        settings = load_settings(config_path)
        result.settings = settings
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    if config_path is None:
        result.warnings.append(f"No {SETTINGS_FILE} found — built-in defaults apply.")

    # Semantic checks
    if not settings.sources.enabled_names():
        result.warnings.append("All sources are disabled. Export will capture nothing.")

    if settings.sources.winget.enabled and not settings.sources.winget.channels:
        result.warnings.append("Winget is enabled but has no channels to query.")

    renames = settings.reinstall.renamed_packages
    identity = sorted(old for old, new in renames.items() if old == new)
    if identity:
        result.warnings.append(f"Renames to the same identifier: {', '.join(identity)}")

    cycles = sorted(set(_rename_cycles(renames)) - set(identity))
    if cycles:
        result.warnings.append(f"Rename cycle involving: {', '.join(cycles)}")

    result.valid = len(result.errors) == 0
    return result
