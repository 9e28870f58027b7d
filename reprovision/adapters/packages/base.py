"""
Command-line install adapter — shared plumbing for package managers.

Subclasses only say which executable to look for, how to spell the
install command, and which exit codes mean success.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from abc import abstractmethod

from reprovision.adapters.base import Adapter, ExecutionContext
from reprovision.adapters.shell.command import Runner, run_command
from reprovision.core.models.action import Receipt

logger = logging.getLogger(__name__)
installer_log = logging.getLogger("reprovision.installer")

_OUTPUT_TAIL = 2000


def _tail(text: str) -> str:
    text = text.strip()
    return text[-_OUTPUT_TAIL:] if len(text) > _OUTPUT_TAIL else text


class CommandInstallAdapter(Adapter):
    """Install by identifier through a package-manager CLI.

    Action params:
        identifier (str): Package id to install (required).
        origin (str): Source channel, passed through when the tool supports it.
    """

    executable: str = ""
    success_codes: frozenset[int] = frozenset({0})

    def __init__(self, runner: Runner | None = None):
        self._runner = runner or run_command

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.identifier:
            return False, "Missing required param: 'identifier'"
        return True, ""

    @abstractmethod
    def build_command(self, context: ExecutionContext) -> list[str]:
        """Argument list that installs ``context.identifier``."""

    def execute(self, context: ExecutionContext) -> Receipt:
        command = self.build_command(context)
        logger.info("Installing %s via %s", context.identifier, self.name)
        start = time.monotonic()

        try:
            result = self._runner(command, context.timeout)
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Install timed out after {context.timeout}s",
                metadata={"command": command, "timeout": context.timeout},
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Cannot run {self.executable}: {e}",
                metadata={"command": command},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = _tail(result.stdout or "")
        stderr = _tail(result.stderr or "")

        if result.returncode in self.success_codes:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=stdout,
                duration_ms=elapsed_ms,
                metadata={"command": command, "return_code": result.returncode},
            )

        if stderr:
            installer_log.info("%s stderr for %s: %s", self.name, context.identifier, stderr)
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=stderr or f"{self.executable} exited with code {result.returncode}",
            duration_ms=elapsed_ms,
            metadata={
                "command": command,
                "return_code": result.returncode,
                "stdout": stdout,
            },
        )
