"""Key-value storage backends with two durability tiers.

Features:
- Async get/set/remove/keys interface shared by all backends
- In-memory backend for tests and ephemeral runs
- JSON file backend for single-process persistence
- Single-key writes serialized with an asyncio lock
- Backend faults surface as StorageUnavailable, never as raw OSError

Tiers:
- sync: data that may follow the user across devices (reputation)
- local: device-only data (feedback records, clusters, encryption key)

Usage:
    storage = TieredStorage.in_memory()
    await storage.local.set("feedback:abc", {...})
    record = await storage.local.get("feedback:abc")
"""

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from credibility_feedback.errors import StorageUnavailable


class KeyValueStore(ABC):
    """Abstract async key-value store holding JSON-compatible values."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the value for key, or None."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous value."""

    @abstractmethod
    async def remove(self, key: str) -> bool:
        """Delete key. Returns True if it existed."""

    @abstractmethod
    async def keys(self, prefix: str = "") -> List[str]:
        """List keys starting with prefix."""

    async def values(self, prefix: str = "") -> List[Any]:
        """Fetch every value whose key starts with prefix."""
        result = []
        for key in await self.keys(prefix):
            value = await self.get(key)
            if value is not None:
                result.append(value)
        return result


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local dict-backed store."""

    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        return self._data.get(key)

    async def set(self, key: str, value: Any) -> None:
        # Stored values are detached JSON copies
        async with self._lock:
            self._data[key] = json.loads(json.dumps(value, default=str))

    async def remove(self, key: str) -> bool:
        async with self._lock:
            return self._data.pop(key, None) is not None

    async def keys(self, prefix: str = "") -> List[str]:
        return [k for k in self._data if k.startswith(prefix)]


class JsonFileKeyValueStore(KeyValueStore):
    """
    Store persisted as one JSON document.

    The file is loaded lazily on first access and rewritten after each
    mutation. Any failure to read, parse or write it raises
    StorageUnavailable; the in-memory view is rolled back when a write fails
    so no partial value survives.

    Attributes:
        path: Location of the JSON document
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._data: Optional[Dict[str, Any]] = None
        self._lock = asyncio.Lock()
        self.logger = logger.bind(component="JsonFileKeyValueStore")

    def _open(self) -> Dict[str, Any]:
        if self._data is not None:
            return self._data
        try:
            if self.path.exists():
                with open(self.path, "r", encoding="utf-8") as f:
                    loaded = json.load(f)
                if not isinstance(loaded, dict):
                    raise StorageUnavailable(f"{self.path} does not hold a JSON object")
                self._data = loaded
            else:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._data = {}
        except (OSError, json.JSONDecodeError) as e:
            raise StorageUnavailable(f"cannot open {self.path}: {e}") from e

        self.logger.debug(f"Opened store with {len(self._data)} keys", path=str(self.path))
        return self._data

    def _flush(self, data: Dict[str, Any]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, default=str)
            tmp_path.replace(self.path)
        except OSError as e:
            raise StorageUnavailable(f"cannot write {self.path}: {e}") from e

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            return self._open().get(key)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            data = self._open()
            missing = object()
            previous = data.get(key, missing)
            data[key] = json.loads(json.dumps(value, default=str))
            try:
                self._flush(data)
            except StorageUnavailable:
                if previous is missing:
                    data.pop(key, None)
                else:
                    data[key] = previous
                raise

    async def remove(self, key: str) -> bool:
        async with self._lock:
            data = self._open()
            if key not in data:
                return False
            previous = data.pop(key)
            try:
                self._flush(data)
            except StorageUnavailable:
                data[key] = previous
                raise
            return True

    async def keys(self, prefix: str = "") -> List[str]:
        async with self._lock:
            return [k for k in self._open() if k.startswith(prefix)]


@dataclass
class TieredStorage:
    """The two durability tiers handed to stores and trackers."""

    sync: KeyValueStore
    local: KeyValueStore

    @classmethod
    def in_memory(cls) -> "TieredStorage":
        return cls(sync=InMemoryKeyValueStore(), local=InMemoryKeyValueStore())

    @classmethod
    def on_disk(cls, data_dir: str | Path) -> "TieredStorage":
        base = Path(data_dir)
        return cls(
            sync=JsonFileKeyValueStore(base / "sync.json"),
            local=JsonFileKeyValueStore(base / "local.json"),
        )


__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "TieredStorage",
]
