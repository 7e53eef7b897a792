"""Key-value stores backing user-editable settings."""

import json
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from chatrelay.utils.errors import StorageError
from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)


class KeyValueStore(ABC):
    """Minimal string key-value contract"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent"""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value under key"""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove a key; absent keys are ignored"""

    @abstractmethod
    def clear(self) -> None:
        """Remove every key"""

    @abstractmethod
    def keys(self) -> List[str]:
        """Return all stored keys"""


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store, mainly for tests and ephemeral sessions"""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())


class JsonFileKeyValueStore(KeyValueStore):
    """Single JSON document on disk, rewritten atomically on every change"""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._data = self._load()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Corrupted settings file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring settings file {self.path}: not a JSON object")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self) -> None:
        tmp_path = self.path.with_suffix(".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink()
            raise StorageError(f"Failed to write settings file {self.path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self._flush()

    def remove(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._flush()

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._flush()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())
