"""
Configuration management for TaskBox.

Loads settings from config/settings.ini with environment variable overrides.
"""

import configparser
import os
from pathlib import Path
from typing import Optional, Dict, Any

from taskbox.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".taskbox"
DEFAULT_DATABASE_URL = f"sqlite+aiosqlite:///{DEFAULT_DATA_DIR / 'taskbox.db'}"
DEFAULT_SHARD_COUNT = 10


class Config:
    """Application configuration manager."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config file, defaults to config/settings.ini
        """
        self.config_path = config_path or self._default_config_path()
        self._config = configparser.ConfigParser()
        self._load()

    def _default_config_path(self) -> Path:
        """Get default config path."""
        project_root = Path(__file__).parent.parent
        return project_root / "config" / "settings.ini"

    def _load(self):
        """Load configuration from file."""
        if self.config_path.exists():
            try:
                self._config.read(self.config_path)
                logger.info(f"Loaded configuration from {self.config_path}")
            except configparser.Error as e:
                logger.warning(f"Failed to read config file: {e}. Using defaults.")
        else:
            logger.debug(f"Config file not found at {self.config_path}. Using defaults.")

    def get_database_config(self) -> Dict[str, Any]:
        """
        Get database configuration with environment overrides.

        Environment variables take precedence over config file:
        - TASKBOX_DATABASE_URL

        Returns:
            Dictionary with database configuration
        """
        config = {
            'url': os.getenv('TASKBOX_DATABASE_URL') or
                   self._config.get('database', 'url', fallback=DEFAULT_DATABASE_URL),
        }

        logger.debug(f"Database config: url={config['url']}")

        return config

    def get_counter_config(self) -> Dict[str, Any]:
        """
        Get task counter configuration with environment overrides.

        Environment variables take precedence over config file:
        - TASKBOX_SHARD_COUNT

        Returns:
            Dictionary with counter configuration
        """
        config = {
            'shard_count': int(os.getenv('TASKBOX_SHARD_COUNT') or
                               self._config.get('counter', 'shard_count',
                                                fallback=str(DEFAULT_SHARD_COUNT))),
        }

        if config['shard_count'] < 1:
            logger.warning(
                f"Invalid shard_count={config['shard_count']}, using {DEFAULT_SHARD_COUNT}"
            )
            config['shard_count'] = DEFAULT_SHARD_COUNT

        logger.debug(f"Counter config: shard_count={config['shard_count']}")

        return config

    def get_display_config(self) -> Dict[str, Any]:
        """
        Get display configuration with environment overrides.

        Environment variables take precedence over config file:
        - TASKBOX_SHOW_COMPLETED

        Returns:
            Dictionary with display configuration
        """
        show_completed_env = os.getenv('TASKBOX_SHOW_COMPLETED', '').lower()
        show_completed = (
            show_completed_env == 'true'
            if show_completed_env
            else self._config.getboolean('display', 'show_completed', fallback=False)
        )

        config = {
            'show_completed': show_completed,
        }

        logger.debug(f"Display config: show_completed={config['show_completed']}")

        return config

    def get(self, section: str, key: str, fallback: Any = None) -> Any:
        """
        Get configuration value with fallback.

        Args:
            section: Config section name
            key: Config key name
            fallback: Default value if not found

        Returns:
            Configuration value or fallback
        """
        return self._config.get(section, key, fallback=fallback)

    def get_bool(self, section: str, key: str, fallback: bool = False) -> bool:
        """Get boolean configuration value."""
        return self._config.getboolean(section, key, fallback=fallback)

    def get_int(self, section: str, key: str, fallback: int = 0) -> int:
        """Get integer configuration value."""
        return self._config.getint(section, key, fallback=fallback)

    def has_section(self, section: str) -> bool:
        """Check if config section exists."""
        return self._config.has_section(section)

    def sections(self) -> list:
        """Get list of all configuration sections."""
        return self._config.sections()
