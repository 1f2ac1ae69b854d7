"""Engine configuration stored in YAML.

Example ``config.yaml``::

    game:
      data_path: /games/Skyrim/Data
    metadata:
      masterlist: masterlist.yaml
      prelude: prelude.yaml
      userlist: userlist.yaml
    language: en

Relative metadata paths are resolved against the configuration file's
directory.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from loadsort.exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"


class GameConfig(BaseModel):
    """Where the game's plugins live."""

    data_path: Path | None = None


class MetadataPathsConfig(BaseModel):
    """Locations of the masterlist, its prelude and the userlist."""

    masterlist: Path | None = None
    prelude: Path | None = None
    userlist: Path | None = None


class EngineConfig(BaseModel):
    """Top-level engine configuration."""

    game: GameConfig = Field(default_factory=GameConfig)
    metadata: MetadataPathsConfig = Field(default_factory=MetadataPathsConfig)
    language: str = "en"


def _is_windows() -> bool:
    """Return True when running on Windows."""
    return os.name == "nt"


def get_loadsort_home() -> Path:
    """Return the user-global loadsort directory.

    Resolution order:
    1. LOADSORT_HOME environment variable (all platforms)
    2. %LOCALAPPDATA%\\loadsort\\ on Windows (via platformdirs)
    3. ~/.loadsort/ elsewhere
    """
    if env_home := os.environ.get("LOADSORT_HOME"):
        return Path(env_home)

    if _is_windows():
        from platformdirs import user_data_dir

        return Path(user_data_dir("loadsort"))

    return Path.home() / ".loadsort"


def default_config_path() -> Path:
    return get_loadsort_home() / CONFIG_FILENAME


def _resolve(base: Path, path: Path | None) -> Path | None:
    if path is None or path.is_absolute():
        return path
    return base / path


def load_engine_config(config_path: Path | None = None) -> EngineConfig:
    """Load engine configuration, returning defaults if the file is absent.

    Raises:
        ConfigError: If the file is not valid YAML or has invalid values.
    """
    config_path = Path(config_path) if config_path is not None else default_config_path()
    if not config_path.exists():
        logger.warning("Config file not found: %s", config_path)
        return EngineConfig()

    yaml = YAML(typ="safe")
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.load(handle) or {}
    except YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config in {config_path}: expected a map at the top level")

    try:
        config = EngineConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {config_path}: {exc}") from exc

    base = config_path.parent
    config.game.data_path = _resolve(base, config.game.data_path)
    config.metadata.masterlist = _resolve(base, config.metadata.masterlist)
    config.metadata.prelude = _resolve(base, config.metadata.prelude)
    config.metadata.userlist = _resolve(base, config.metadata.userlist)
    return config
