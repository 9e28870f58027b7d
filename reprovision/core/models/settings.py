"""
Settings model — loaded from reprovision.yml.

Every key has a default, so an absent file means "collect from every
source, reinstall blindly" and a partial file only overrides what it
names.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field


class CollectionSettings(BaseModel):
    """How the collectors are run."""

    parallel: bool = True
    max_workers: int | None = Field(default=None, ge=1)
    command_timeout: int = Field(default=120, ge=1)   # seconds, per query


class RegistrySourceSettings(BaseModel):
    enabled: bool = True


class WingetSourceSettings(BaseModel):
    enabled: bool = True
    channels: list[str] = Field(default_factory=lambda: ["winget", "msstore"])


class ChocolateySourceSettings(BaseModel):
    enabled: bool = True
    root: str | None = None     # default: $ChocolateyInstall or C:\ProgramData\chocolatey


class AppxSourceSettings(BaseModel):
    enabled: bool = True


class SourceSettings(BaseModel):
    """Per-source toggles."""

    registry: RegistrySourceSettings = Field(default_factory=RegistrySourceSettings)
    winget: WingetSourceSettings = Field(default_factory=WingetSourceSettings)
    chocolatey: ChocolateySourceSettings = Field(default_factory=ChocolateySourceSettings)
    appx: AppxSourceSettings = Field(default_factory=AppxSourceSettings)

    def enabled_names(self) -> list[str]:
        return [
            name
            for name in ("registry", "winget", "chocolatey", "appx")
            if getattr(self, name).enabled
        ]


class ReinstallSettings(BaseModel):
    """How the installer planner behaves."""

    install_timeout: int = Field(default=1800, ge=1)   # seconds, per attempt
    skip_present: bool = False
    renamed_packages: dict[str, str] = Field(default_factory=dict)


class Settings(BaseModel):
    """Root settings model."""

    version: int = 1

    collection: CollectionSettings = Field(default_factory=CollectionSettings)
    sources: SourceSettings = Field(default_factory=SourceSettings)
    reinstall: ReinstallSettings = Field(default_factory=ReinstallSettings)

    state_dir: str = "~/.reprovision"

    @property
    def state_path(self) -> Path:
        """Resolved directory for the audit ledger."""
        return Path(self.state_dir).expanduser()
