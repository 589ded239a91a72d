"""Short-lived cache for computed quote results.

Entries expire a fixed time after they were stored (the TTL is not sliding).
Expired entries are removed lazily, on the first read that finds them stale;
there is no background sweep.

Keys combine the result kind and currency, e.g. "quotes_ARS".
"""

import logging
import time
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached value and the time it was stored.

    :ivar data: Cached value.
    :ivar timestamp: Unix timestamp of insertion.
    """

    data: Any
    timestamp: float


class ResultCache:
    """In-process TTL cache shared by request handlers and the refresh timer.

    There is no per-key locking: concurrent writers to the same key simply
    overwrite each other and the last write wins.

    :ivar ttl: Seconds an entry stays fresh after insertion.
    """

    DEFAULT_TTL = 60.0

    def __init__(self, ttl: float = DEFAULT_TTL) -> None:
        """Initialize an empty cache.

        :param ttl: Seconds an entry stays fresh (default: 60).
        :raises ValueError: If ttl is not positive.
        """
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = ttl
        self._store: dict[str, CacheEntry] = {}

    def set(self, key: str, value: Any) -> None:
        """Store a value, replacing any existing entry and resetting its age.

        :param key: Cache key.
        :param value: Value to store.
        """
        self._store[key] = CacheEntry(data=value, timestamp=time.time())
        logger.debug(f"Cached {key}")

    def get(self, key: str) -> Any | None:
        """Get a cached value if fresh.

        A stale entry is deleted as a side effect.

        :param key: Cache key.
        :returns: The cached value, or None if missing or stale.
        """
        entry = self._store.get(key)
        if entry is None:
            return None
        if time.time() - entry.timestamp > self.ttl:
            del self._store[key]
            logger.debug(f"Evicted stale cache entry {key}")
            return None
        return entry.data

    def clear(self, key: str | None = None) -> None:
        """Remove one entry, or every entry when no key is given.

        :param key: Cache key to remove, or None to empty the cache.
        """
        if key is None:
            self._store.clear()
        else:
            self._store.pop(key, None)

    def is_expired(self, key: str) -> bool:
        """Check whether a key is missing or stale, without evicting it.

        :param key: Cache key.
        :returns: True if there is no fresh entry for key.
        """
        entry = self._store.get(key)
        if entry is None:
            return True
        return time.time() - entry.timestamp > self.ttl

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and not self.is_expired(key)

    def __len__(self) -> int:
        return len(self._store)
