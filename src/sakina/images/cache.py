"""Key-value-backed cache of generated images.

Payloads are data-URI strings stored one per key under a shared prefix.
When the store runs out of room every cached image is evicted and the
write is retried once; images are cheap to regenerate from the same
key and prompt, so no LRU bookkeeping is kept.
"""

from __future__ import annotations

import logging
import threading

from sakina.errors import StorageFullError
from sakina.storage import KeyValueStore

logger = logging.getLogger(__name__)

CACHE_PREFIX = "img_cache_"


class ImageCache:
    """Image payload cache keyed by a stable ``cache_key``."""

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv
        # Evict-then-write must not interleave with other writers
        self._lock = threading.Lock()

    @staticmethod
    def _storage_key(cache_key: str) -> str:
        return f"{CACHE_PREFIX}{cache_key}"

    def get(self, cache_key: str) -> str | None:
        """Return the cached payload, or None on a miss."""
        return self._kv.get(self._storage_key(cache_key))

    def set(self, cache_key: str, payload: str) -> None:
        """Store ``payload``, overwriting any previous value.

        Raises StorageFullError only if the write still fails after the
        whole cache has been evicted.
        """
        key = self._storage_key(cache_key)
        with self._lock:
            try:
                self._kv.set(key, payload)
            except StorageFullError:
                logger.warning("Storage full, clearing %d cached images", len(self._keys()))
                self._evict_all()
                self._kv.set(key, payload)

    def _keys(self) -> list[str]:
        return self._kv.keys(CACHE_PREFIX)

    def _evict_all(self) -> None:
        for key in self._keys():
            self._kv.delete(key)

    def keys(self) -> list[str]:
        """Return cached cache_keys (without the storage prefix)."""
        return [k[len(CACHE_PREFIX):] for k in self._keys()]

    def clear(self) -> None:
        """Evict every cached image."""
        with self._lock:
            self._evict_all()

    def __contains__(self, cache_key: str) -> bool:
        return self.get(cache_key) is not None
