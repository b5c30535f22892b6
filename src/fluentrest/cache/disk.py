"""Disk-based response caching.

Uses :mod:`diskcache` to persist mapped GET responses on the filesystem with
a configurable time-to-live (TTL). The tag index is stored in the same
:class:`diskcache.Cache` under ``tag:<name>`` keys and updated inside a
transaction together with the entry it describes.

See Also:
    :class:`~fluentrest.models.CacheConfig` -- controls ``backend``,
    ``ttl_seconds`` and ``directory``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Optional

import diskcache

from fluentrest.cache.base import TaggedCache

_TAG_PREFIX = "tag:"


class DiskCache(TaggedCache):
    """Disk-backed cache for mapped GET responses.

    Args:
        cache_dir: Root directory for the cache. A ``responses/``
            subdirectory is created inside it.
        ttl_seconds: Entry lifetime. ``None`` keeps entries until evicted.

    Example::

        from fluentrest.cache import DiskCache

        cache = DiskCache("/tmp/api-cache", ttl_seconds=300)
        client = Client(config, cache=cache)
    """

    def __init__(self, cache_dir: str | Path, ttl_seconds: Optional[int] = 300) -> None:
        self._cache_dir = Path(cache_dir)
        self._ttl = ttl_seconds
        self._cache = diskcache.Cache(str(self._cache_dir / "responses"))

    def get(self, key: str, default: Any = None) -> Any:
        return self._cache.get(key, default)

    def remember(self, key: str, value: Any, tags: Iterable[str] = ()) -> Any:
        with self._cache.transact():
            self._cache.set(key, value, expire=self._ttl)
            for tag in tags:
                keys = self._cache.get(_TAG_PREFIX + tag, set())
                keys.add(key)
                self._cache.set(_TAG_PREFIX + tag, keys)
        return value

    def invalidate_tags(self, tags: Iterable[str]) -> int:
        removed = 0
        with self._cache.transact():
            for tag in tags:
                for key in self._cache.pop(_TAG_PREFIX + tag, set()):
                    if self._cache.delete(key):
                        removed += 1
        return removed

    def clear(self) -> None:
        self._cache.clear()

    def stats(self) -> dict[str, Any]:
        """Return ``size``, ``directory`` and ``ttl_seconds``."""
        return {
            "size": sum(1 for key in self._cache if not str(key).startswith(_TAG_PREFIX)),
            "directory": str(self._cache_dir / "responses"),
            "ttl_seconds": self._ttl,
        }

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache`."""
        self._cache.close()
