"""
Rainwatch - Settings Store

Durable key-value persistence for the agent configuration. Writes are
synchronous so a crash right after a mutation never loses it.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class SettingsStore(ABC):
    """Abstract key-value store."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for ``key`` or ``default`` when absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key`` durably."""
        pass


class MemorySettingsStore(SettingsStore):
    """Dict-backed store for tests and ephemeral runs."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._data)


class JsonFileSettingsStore(SettingsStore):
    """
    JSON file store.

    The whole file is rewritten on every ``set``. A missing file is an empty
    store; a corrupt one is logged and treated as empty.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._data = self._load()

    def _load(self) -> Dict[str, Any]:
        """Load state from file."""
        try:
            if self.path.exists():
                with open(self.path, 'r') as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    return data
                logger.error(f"Settings file {self.path} does not hold an object, ignoring it")
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading settings from {self.path}: {e}")
        return {}

    def _save(self):
        """Save state to file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, 'w') as f:
            json.dump(self._data, f, indent=2, sort_keys=True)
        tmp_path.replace(self.path)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._save()
