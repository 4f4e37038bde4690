"""Configuration management for soil-health-engine.

Settings come from an optional YAML file named by the ``SOIL_HEALTH_CONFIG``
environment variable (a ``.env`` file is honoured), layered over defaults.
The estimation, location and series functions never read settings
themselves; callers such as the CLI pass them in explicitly.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from soil_health_engine.location import DETAILS_MAX_LENGTH
from soil_health_engine.logging_config import get_logger
from soil_health_engine.timeseries import DEFAULT_DATE_LABEL_FORMAT

logger = get_logger(__name__)

CONFIG_ENV_VAR = "SOIL_HEALTH_CONFIG"


class EngineSettings(BaseModel):
    """Application settings."""

    date_label_format: str = Field(
        DEFAULT_DATE_LABEL_FORMAT,
        description='strftime pattern for chart labels; "{day}" is the unpadded day',
    )
    details_max_length: int = Field(
        DETAILS_MAX_LENGTH,
        ge=4,
        description="Longest place suffix kept in GPS display names",
    )
    log_level: str = Field("INFO", description="Default log level")
    log_file: str | None = Field(
        None, description="Rotating log file; file logging is off when unset"
    )
    default_output_format: Literal["json", "table"] = Field(
        "table", description="CLI output format when --format is not given"
    )


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load a YAML settings file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not valid YAML or not a mapping
        RuntimeError: If the file cannot be read
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise RuntimeError(f"Failed to load {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at the top of {path}")

    logger.debug(f"Loaded configuration from {path}")
    return data


@lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    """Get application settings, loading them on first use."""
    load_dotenv(override=False)

    data: dict[str, Any] = {}
    config_path = os.getenv(CONFIG_ENV_VAR)
    if config_path:
        data = load_yaml_config(Path(config_path))

    if "LOG_LEVEL" in os.environ:
        data["log_level"] = os.environ["LOG_LEVEL"]

    return EngineSettings(**data)


def clear_settings_cache() -> None:
    """Clear cached settings to force a reload from the current environment."""
    get_settings.cache_clear()
