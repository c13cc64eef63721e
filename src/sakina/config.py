"""Unified configuration loaded from .sakina.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
API keys are read from the environment by the services that use them
and never live in the config.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".sakina.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG_PATH = Path.home() / ".config" / "sakina" / "config.toml"


class StorageConfig(BaseModel):
    """[storage] section."""

    data_dir: str = "~/.sakina"
    filename: str = "store.json"
    capacity_bytes: int = Field(default=5_000_000, ge=0)  # 0 = unbounded

    @property
    def path(self) -> Path:
        return Path(self.data_dir).expanduser() / self.filename

    @property
    def capacity(self) -> int | None:
        return self.capacity_bytes or None


class ImagesConfig(BaseModel):
    """[images] section."""

    model: str = "gemini-2.5-flash-image"
    aspect_ratio: str = "1:1"


class ReframeConfig(BaseModel):
    """[reframe] section."""

    model: str = "haiku"
    timeout: int = 60


class SakinaConfig(BaseModel):
    """Top-level configuration model."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    images: ImagesConfig = Field(default_factory=ImagesConfig)
    reframe: ReframeConfig = Field(default_factory=ReframeConfig)


def load_config(path: str | Path | None = None) -> SakinaConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .sakina.toml in CWD
    3. ~/.config/sakina/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged SakinaConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG_PATH.exists():
            data = _load_toml(GLOBAL_CONFIG_PATH)
            logger.info("Loaded config from %s", GLOBAL_CONFIG_PATH)

    config = SakinaConfig.model_validate(data) if data else SakinaConfig()
    return _apply_env_vars(config)


def merge_cli_overrides(config: SakinaConfig, **cli_kwargs: object) -> SakinaConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "data_dir": ("storage", "data_dir"),
        "image_model": ("images", "model"),
        "reframe_model": ("reframe", "model"),
    }

    for key, value in cli_kwargs.items():
        if value is None or key not in mapping:
            continue
        section, field = mapping[key]
        data[section][field] = str(value) if isinstance(value, Path) else value

    return SakinaConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: SakinaConfig) -> SakinaConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "SAKINA_DATA_DIR": ("storage", "data_dir"),
        "SAKINA_IMAGE_MODEL": ("images", "model"),
        "SAKINA_REFRAME_MODEL": ("reframe", "model"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    capacity_raw = os.environ.get("SAKINA_STORAGE_CAPACITY")
    if capacity_raw is not None:
        try:
            data["storage"]["capacity_bytes"] = int(capacity_raw)
        except ValueError:
            logger.warning("Ignoring non-integer SAKINA_STORAGE_CAPACITY=%r", capacity_raw)

    return SakinaConfig.model_validate(data)
