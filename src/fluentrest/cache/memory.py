"""In-process cache backend."""

from __future__ import annotations

import time
from typing import Any, Iterable, Optional

from fluentrest.cache.base import TaggedCache


class MemoryCache(TaggedCache):
    """Dict-backed cache with an optional TTL and a tag index.

    Args:
        ttl_seconds: Entry lifetime. ``None`` keeps entries until cleared.
    """

    def __init__(self, ttl_seconds: Optional[float] = None) -> None:
        self._ttl = ttl_seconds
        self._entries: dict[str, tuple[Optional[float], Any]] = {}
        self._tags: dict[str, set[str]] = {}

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        expires_at, value = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self._entries[key]
            return default
        return value

    def remember(self, key: str, value: Any, tags: Iterable[str] = ()) -> Any:
        expires_at = time.monotonic() + self._ttl if self._ttl is not None else None
        self._entries[key] = (expires_at, value)
        for tag in tags:
            self._tags.setdefault(tag, set()).add(key)
        return value

    def invalidate_tags(self, tags: Iterable[str]) -> int:
        removed = 0
        for tag in tags:
            for key in self._tags.pop(tag, set()):
                if self._entries.pop(key, None) is not None:
                    removed += 1
        return removed

    def clear(self) -> None:
        self._entries.clear()
        self._tags.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, Any]:
        return {"size": len(self._entries), "ttl_seconds": self._ttl}
