"""
Configuration management for VALIS.

This module handles loading and accessing configuration values from config.yaml.
It provides a centralized place for thresholds such as the health grace period,
so behavior can be tuned without changing code.
"""

import yaml
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict
import logging


class ConfigManager:
    """
    Manages configuration loading and access for VALIS.
    """

    def __init__(self, config_path: str = "config.yaml"):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        try:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._config = yaml.safe_load(f) or {}

            logging.info(f"Configuration loaded from {self.config_path}")

        except (OSError, yaml.YAMLError) as e:
            logging.warning(f"Failed to load configuration: {e}")
            # Fall back to default configuration
            self._config = self._get_default_config()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values as fallback."""
        return {
            "database": {
                "filename": "valis.db"
            },
            "paths": {
                "log_file": "valis.log",
                "export_file": "valis.jsonl"
            },
            "health": {
                "grace_period_days": 7
            },
            "review": {
                "avoidance_limit": 5,
                "stale_after_days": 180
            },
            "search": {
                "threshold": 80
            },
            "agenda": {
                "default_window": "1w"
            },
            "logging": {
                "level": "INFO",
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }
        }

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key_path: Dot-separated path to the configuration value (e.g., "health.grace_period_days")
            default: Default value if key is not found

        Returns:
            The configuration value

        Examples:
            config.get("database.filename")  # Returns "valis.db"
            config.get("review.stale_after_days")  # Returns 180
        """
        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get an entire configuration section.

        Args:
            section: Name of the configuration section

        Returns:
            Dictionary containing the section configuration
        """
        return self._config.get(section, {})

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    # Convenience properties for commonly used values

    @property
    def database_filename(self) -> str:
        """Get database filename."""
        return self.get("database.filename", "valis.db")

    @property
    def log_filename(self) -> str:
        """Get log file name."""
        return self.get("paths.log_file", "valis.log")

    @property
    def export_filename(self) -> str:
        """Get default export file name."""
        return self.get("paths.export_file", "valis.jsonl")

    @property
    def grace_period(self) -> timedelta:
        """How late a next action may be before it counts as overdue."""
        return timedelta(days=int(self.get("health.grace_period_days", 7)))

    @property
    def avoidance_limit(self) -> int:
        """Consecutive postponements after which an entity counts as avoided."""
        return int(self.get("review.avoidance_limit", 5))

    @property
    def stale_after_days(self) -> int:
        """Days without review or update after which an entity counts as stale."""
        return int(self.get("review.stale_after_days", 180))

    @property
    def search_threshold(self) -> int:
        """Minimum fuzzy score for search hits."""
        return int(self.get("search.threshold", 80))

    @property
    def agenda_window(self) -> str:
        """Default time window for the agenda command."""
        return self.get("agenda.default_window", "1w")


# Global configuration instance
config = ConfigManager()


def get_config() -> ConfigManager:
    """
    Get the global configuration instance.

    Returns:
        The global ConfigManager instance
    """
    return config
