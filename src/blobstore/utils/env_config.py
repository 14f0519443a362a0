"""
Environment-based configuration for the blobstore command line tools.

Settings come from environment variables, optionally seeded from a ``.env``
file in the working directory. The storage core never reads these; the
command line driver resolves them into plain values before building stores.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables from .env file
env_file = Path.cwd() / ".env"
if env_file.exists():
    load_dotenv(env_file)
    logger.info(f"Loaded environment variables from: {env_file}")


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    value = os.getenv(key, "").lower()
    return value in ("true", "1", "yes", "on") if value else default


@dataclass
class AppSettings:
    """Settings for the tree-copy tool, read from environment variables."""

    # Named-profile store
    config_path: Optional[str] = field(default_factory=lambda: os.getenv("BLOBSTORE_CONFIG_PATH"))
    alias: Optional[str] = field(default_factory=lambda: os.getenv("BLOBSTORE_ALIAS"))

    # Destination store
    bucket: str = field(default_factory=lambda: os.getenv("BLOBSTORE_BUCKET", "benchmark"))
    disable_ssl: bool = field(default_factory=lambda: get_env_bool("BLOBSTORE_DISABLE_SSL", True))

    # Logging Configuration
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_json_format: bool = field(default_factory=lambda: get_env_bool("LOG_JSON_FORMAT", False))

    def __post_init__(self):
        self.log_level = self.log_level.upper()
        if self.log_level not in logging.getLevelNamesMapping():
            logger.warning(f"Unknown LOG_LEVEL {self.log_level!r}, falling back to INFO")
            self.log_level = "INFO"


# Global settings instance
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


def reload_settings() -> AppSettings:
    """Reload the global settings from the environment."""
    global _settings
    if env_file.exists():
        load_dotenv(env_file, override=True)
    _settings = AppSettings()
    return _settings
