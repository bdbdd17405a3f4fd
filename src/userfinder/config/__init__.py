"""Configuration management for userfinder.

Loads and validates YAML-based configuration with Pydantic models.
Supports environment variable overrides for every setting.
"""

from userfinder.config.settings import LoggingConfig, ServerConfig, Settings, load_settings

__all__ = ["LoggingConfig", "ServerConfig", "Settings", "load_settings"]
