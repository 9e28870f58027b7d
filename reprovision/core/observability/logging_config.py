"""
Logging configuration — one call from the CLI group, before any command runs.

Levels resolve in precedence order:
    CLI flag  >  REPROVISION_LOG_LEVEL  >  WARNING

REPROVISION_LOG_FILE adds a file handler; REPROVISION_LOG_FILE_LEVEL
gives it its own level (default: the console level).

Package managers are chatty. Their stderr goes to the
``reprovision.installer`` logger, which reaches the log file at INFO
but only reaches the console at DEBUG, so ``-v`` progress stays readable
during a long reinstall.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping

ENV_LEVEL = "REPROVISION_LOG_LEVEL"
ENV_FILE = "REPROVISION_LOG_FILE"
ENV_FILE_LEVEL = "REPROVISION_LOG_FILE_LEVEL"

INSTALLER_LOGGER = "reprovision.installer"

_CONSOLE_FORMATS: dict[int, tuple[str, str | None]] = {
    logging.DEBUG: ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s", "%H:%M:%S"),
    logging.INFO: ("%(asctime)s %(message)s", "%H:%M:%S"),
}
_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"


class _HideInstallerOutput(logging.Filter):
    """Drop installer output records below DEBUG verbosity."""

    def filter(self, record: logging.LogRecord) -> bool:
        return not record.name.startswith(INSTALLER_LOGGER)


def setup_logging(
    level: str | None = None,
    log_file: str | None = None,
    log_file_level: str | None = None,
    env: Mapping[str, str] | None = None,
) -> None:
    """Configure the root logger for the whole process.

    Args:
        level: Console level from a CLI flag. Falls back to the
            environment, then WARNING.
        log_file: Log file path. Falls back to the environment.
        log_file_level: File handler level. Falls back to the
            environment, then the console level.
        env: Environment to read (defaults to ``os.environ``).
    """
    env = os.environ if env is None else env
    console_level = _parse_level(level or env.get(ENV_LEVEL))
    log_file = log_file or env.get(ENV_FILE) or None
    file_level_name = log_file_level or env.get(ENV_FILE_LEVEL)

    fmt, datefmt = _CONSOLE_FORMATS.get(console_level, ("%(message)s", None))
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    if console_level > logging.DEBUG:
        console.addFilter(_HideInstallerOutput())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    effective_level = console_level
    if log_file:
        file_level = _parse_level(file_level_name) if file_level_name else console_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(effective_level)
    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Convert a level name to its numeric constant; unknown names mean WARNING."""
    if not level:
        return logging.WARNING
    numeric = logging.getLevelName(level.strip().upper())
    return numeric if isinstance(numeric, int) else logging.WARNING
