"""
Winget adapter — install by package id from a winget source.
"""

from __future__ import annotations

from reprovision.adapters.base import ExecutionContext
from reprovision.adapters.packages.base import CommandInstallAdapter


class WingetAdapter(CommandInstallAdapter):
    """``winget install --id <id> --exact``, pinned to the recorded source."""

    executable = "winget"

    @property
    def name(self) -> str:
        return "winget"

    def build_command(self, context: ExecutionContext) -> list[str]:
        command = [
            self.executable,
            "install",
            "--id",
            context.identifier,
            "--exact",
            "--silent",
            "--disable-interactivity",
            "--accept-package-agreements",
            "--accept-source-agreements",
        ]
        if context.origin:
            command += ["--source", context.origin]
        return command
