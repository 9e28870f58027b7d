"""
Command runner — the single place where external tools are spawned.

Collectors query through it, install adapters install through it. Both
accept an injectable ``Runner`` so tests can replace the subprocess
boundary with a fake.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Runner = Callable[[list[str], int], "subprocess.CompletedProcess[str]"]


def run_command(args: list[str], timeout: int = 120) -> subprocess.CompletedProcess[str]:
    """Run a command and capture its output as text.

    Raises:
        subprocess.TimeoutExpired: If the command outlives ``timeout``.
        OSError: If the executable cannot be started.
    """
    kwargs: dict[str, Any] = {}
    if sys.platform == "win32":
        kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW

    logger.debug("Executing: %s (timeout=%ss)", " ".join(args), timeout)
    return subprocess.run(
        args,
        capture_output=True,
        text=True,
        encoding="utf-8",
        errors="replace",
        timeout=timeout,
        **kwargs,
    )


def powershell_executable() -> str | None:
    """Path to a PowerShell host, preferring PowerShell 7."""
    return shutil.which("pwsh") or shutil.which("powershell")


def powershell_command(executable: str, script: str) -> list[str]:
    """Argument list running ``script`` non-interactively."""
    return [executable, "-NoLogo", "-NoProfile", "-NonInteractive", "-Command", script]
