"""Synchronous key-value persistence.

Every component (journal, image cache, preferences) shares one store.
Values are strings; callers own their own serialization.  Both
implementations enforce an optional capacity, counted as the sum of
``len(key) + len(value)`` over all pairs, and raise StorageFullError
without modifying anything when a write would exceed it.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from sakina.errors import StorageFullError

logger = logging.getLogger(__name__)

# Alias to avoid shadowing by the keys() methods below
_list = list


class KeyValueStore(Protocol):
    """Minimal storage contract shared by all persisted state."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self, prefix: str = "") -> _list[str]: ...


def _size(data: dict[str, str]) -> int:
    return sum(len(k) + len(v) for k, v in data.items())


class MemoryStore:
    """In-process store, used by tests and as a scratch backend."""

    def __init__(self, capacity: int | None = None) -> None:
        self.capacity = capacity
        self._data: dict[str, str] = {}

    def _check_capacity(self, key: str, value: str) -> None:
        if self.capacity is None:
            return
        projected = dict(self._data)
        projected[key] = value
        if _size(projected) > self.capacity:
            raise StorageFullError(
                f"Writing {key!r} would exceed store capacity of {self.capacity}"
            )

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._check_capacity(key, value)
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> _list[str]:
        return [k for k in self._data if k.startswith(prefix)]

    def __len__(self) -> int:
        return len(self._data)


class JsonFileStore(MemoryStore):
    """JSON-file-backed store.

    Loads the file once on init and rewrites it after every mutation, so
    a second instance opened on the same path sees every completed write.
    """

    def __init__(self, path: Path, capacity: int | None = None) -> None:
        super().__init__(capacity=capacity)
        self._path = path
        self._data = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError):
            logger.warning("Corrupt store at %s, starting fresh", self._path)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Unexpected store layout at %s, starting fresh", self._path)
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(self._data, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )

    def set(self, key: str, value: str) -> None:
        super().set(key, value)
        self._save()

    def delete(self, key: str) -> None:
        if key not in self._data:
            return
        super().delete(key)
        self._save()
