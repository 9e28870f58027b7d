"""
Configuration loader — reads reprovision.yml into the Settings model.

Lookup order:
    --config flag  >  REPROVISION_CONFIG env var  >  reprovision.yml
    found walking up from the working directory  >  built-in defaults
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from reprovision.core.models.settings import Settings

logger = logging.getLogger(__name__)

SETTINGS_FILE = "reprovision.yml"
SETTINGS_ENV_VAR = "REPROVISION_CONFIG"


class ConfigError(Exception):
    """Raised when the settings file is invalid or unreadable."""


def find_settings_file(start_dir: Path | None = None) -> Path | None:
    """Locate the settings file.

    Checks ``$REPROVISION_CONFIG`` first, then searches for reprovision.yml
    starting from the given directory and walking up.

    Returns:
        Path to the settings file, or None if not found.
    """
    env_path = os.environ.get(SETTINGS_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()

    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / SETTINGS_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_settings(path: Path | None = None) -> Settings:
    """Load and validate settings.

    Args:
        path: Explicit path to the settings file. If None, it is looked
            up; when nothing is found the defaults are returned.

    Returns:
        Validated Settings model.

    Raises:
        ConfigError: If an explicit or discovered file is missing or invalid.
    """
    if path is None:
        path = find_settings_file()
        if path is None:
            logger.debug("No %s found — using defaults", SETTINGS_FILE)
            return Settings()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return Settings()

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e

    logger.info(
        "Loaded settings from %s (sources: %s)",
        path,
        ", ".join(settings.sources.enabled_names()) or "none",
    )
    return settings
