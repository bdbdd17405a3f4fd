"""Configuration management for userfinder.

Loads settings from a YAML configuration file with environment variable
overrides (``USERFINDER_`` prefix). Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/userfinder.yaml")


class ServerConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=0, le=65535)
    grace_period: float = Field(
        default=5.0, gt=0, description="Seconds in-flight requests get to drain on shutdown"
    )
    api_prefix: str = Field(default="/v1")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for the userfinder service.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "USERFINDER_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: env vars > .env file > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _drop_overridden_sections(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                if not os.environ.get(key):
                    os.environ[key] = value


def _drop_overridden_sections(yaml_data: dict) -> None:
    """Remove YAML keys that an environment variable also sets.

    Init kwargs outrank the environment in pydantic-settings, so YAML values
    have to step aside for env vars to win.
    """
    prefix = Settings.model_config["env_prefix"]
    delimiter = Settings.model_config["env_nested_delimiter"]
    for name in os.environ:
        if not name.upper().startswith(prefix):
            continue
        parts = name[len(prefix):].lower().split(delimiter)
        section = parts[0]
        if len(parts) == 1:
            yaml_data.pop(section, None)
        elif isinstance(yaml_data.get(section), dict):
            yaml_data[section].pop(parts[1], None)
