"""Configuration management for the dispatch bot.

Provides a ConfigManager class that handles loading, updating, and persisting
bot configuration from YAML files with sensible defaults.
"""
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from storage.file_store import YAMLFileStore

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "dispatcher": {
        # callback data separator, a single character
        "separator": "~",
        "ignore_messages": False,
        "ignore_edited_messages": False,
        "ignore_channel_posts": False,
        "ignore_edited_channel_posts": False,
    },
    "localization": {
        "default_key": "en",
        "directory": "locales",
    },
    "sniffers": {
        # in seconds; 0 disables expiry
        "expire_after_seconds": 5 * 60,
        "sweep_interval_seconds": 30,
    },
    "logging": {
        "level": "INFO",
    },
}


@dataclass
class ConfigManager:
    """Manages bot configuration with YAML file persistence.

    Attributes:
        path: Path to the YAML configuration file
    """
    path: str
    _store: YAMLFileStore = field(init=False)
    _config: Dict[str, Any] = field(init=False, default_factory=dict)

    def __post_init__(self) -> None:
        self._store = YAMLFileStore(self.path)

    def load(self) -> Dict[str, Any]:
        """Load configuration from file, creating defaults if needed."""
        if not self._store.exists():
            logger.info("Config file %s not found, creating default config", self.path)
            self._store.write(DEFAULT_CONFIG)
            self._config = copy.deepcopy(DEFAULT_CONFIG)
            return self._config

        data = self._store.read()
        if not isinstance(data, dict):
            logger.warning("Config file malformed, resetting to defaults")
            self._store.write(DEFAULT_CONFIG)
            self._config = copy.deepcopy(DEFAULT_CONFIG)
            return self._config

        # Merge defaults with existing config (shallow)
        merged = copy.deepcopy(DEFAULT_CONFIG)
        for k, v in data.items():
            merged[k] = v
        self._config = merged
        return self._config

    def section(self, name: str) -> Dict[str, Any]:
        """Get one configuration section, falling back to its defaults."""
        return self._config.get(name) or copy.deepcopy(DEFAULT_CONFIG.get(name, {}))

