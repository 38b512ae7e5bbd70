"""File-based storage utilities for configuration and localization files.

Provides a YAMLFileStore class for reading and writing YAML configuration files
with atomic write operations, and a LocalizationDirectory provider yielding
localization models from a directory of YAML/JSON files.
"""
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

import yaml

from core.errors import ConfigurationError

logger = logging.getLogger(__name__)

LOCALIZATION_SUFFIXES = (".yaml", ".yml", ".json")


class YAMLFileStore:
    """Handles reading and writing YAML files with atomic operations.

    Attributes:
        path: Path to the YAML file
    """
    def __init__(self, path: str) -> None:
        self.path = path

    def exists(self) -> bool:
        """Check if the YAML file exists."""
        return os.path.exists(self.path)

    def read(self) -> Dict[str, Any]:
        """Read and parse the YAML file.

        Returns:
            Parsed YAML data as dictionary, or empty dict on error
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except FileNotFoundError:
            return {}
        except yaml.YAMLError:
            logger.exception("Failed to parse YAML file %s", self.path)
            return {}

    def write(self, data: Dict[str, Any]) -> None:
        """Write data to YAML file atomically.

        Uses a temporary file and atomic rename to prevent corruption.

        Args:
            data: Dictionary to write as YAML
        """
        tmp_path = self.path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
        os.replace(tmp_path, self.path)


class LocalizationDirectory:
    """
    Yields (language code, model) pairs from every localization file in a
    directory tree. The code is the file name without its suffix, so
    ``locales/en.yaml`` provides the model for ``en``. JSON is valid YAML
    and is read by the same parser.
    """

    def __init__(self, path: str, factory: Optional[Callable[[Dict[str, Any]], Any]] = None) -> None:
        self.path = path
        self.factory = factory

    def __iter__(self) -> Iterator[Tuple[str, Any]]:
        root = Path(self.path)
        if not root.is_dir():
            raise ConfigurationError(f"Localization directory {self.path} does not exist")

        files = sorted(
            p for p in root.rglob("*") if p.is_file() and p.suffix.lower() in LOCALIZATION_SUFFIXES
        )
        for file_path in files:
            yield file_path.stem, self._read(file_path)

    def _read(self, file_path: Path) -> Any:
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Localization file {file_path} is malformed: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigurationError(f"Localization file {file_path} must contain a mapping")

        logger.debug("Read localization file %s (%d keys)", file_path, len(data))
        return self.factory(data) if self.factory is not None else data
