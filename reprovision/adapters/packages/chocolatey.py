"""
Chocolatey adapter — install by package id with choco.
"""

from __future__ import annotations

from reprovision.adapters.base import ExecutionContext
from reprovision.adapters.packages.base import CommandInstallAdapter


class ChocolateyAdapter(CommandInstallAdapter):
    """``choco install <id> -y``.

    Exit codes 1641 and 3010 are Windows Installer "reboot initiated" and
    "reboot required": the package is installed.
    """

    executable = "choco"
    success_codes = frozenset({0, 1641, 3010})

    @property
    def name(self) -> str:
        return "chocolatey"

    def build_command(self, context: ExecutionContext) -> list[str]:
        return [
            self.executable,
            "install",
            context.identifier,
            "-y",
            "--no-progress",
            "--limit-output",
        ]
