"""Pluggable GET response caches.

:class:`RequestCache` defines the cache-or-fetch contract used by
:class:`~fluentrest.client.Client` and the batch executor. Backends:

- :class:`NoCache` -- pass-through, the default.
- :class:`MemoryCache` -- in-process dict with TTL and tag invalidation.
- :class:`DiskCache` -- :mod:`diskcache` on disk with TTL and tag invalidation.

:func:`create_cache` picks a backend from a
:class:`~fluentrest.models.CacheConfig`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from fluentrest.cache.base import NoCache, RequestCache, TaggedCache
from fluentrest.cache.disk import DiskCache
from fluentrest.cache.memory import MemoryCache
from fluentrest.exceptions import ConfigError
from fluentrest.models import CacheConfig


def create_cache(config: CacheConfig, default_dir: Optional[Path] = None) -> RequestCache:
    """Build the backend named by ``config.backend``.

    Raises:
        ConfigError: If the backend name is unknown, or the disk backend
            has no directory.
    """
    backend = config.backend.lower()
    if backend == "none":
        return NoCache()
    if backend == "memory":
        return MemoryCache(ttl_seconds=config.ttl_seconds)
    if backend == "disk":
        directory = config.directory or default_dir
        if directory is None:
            raise ConfigError("Disk cache requires a directory")
        return DiskCache(directory, ttl_seconds=config.ttl_seconds)
    raise ConfigError(f"Unknown cache backend: {config.backend}")


__all__ = [
    "DiskCache",
    "MemoryCache",
    "NoCache",
    "RequestCache",
    "TaggedCache",
    "create_cache",
]
