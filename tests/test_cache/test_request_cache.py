"""Tests for the response cache backends and the cache-or-fetch logic."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from fluentrest.cache import DiskCache, MemoryCache, NoCache, TaggedCache, create_cache
from fluentrest.exceptions import ConfigError, NotFoundError
from fluentrest.models import CacheConfig, RequestDescriptor
from fluentrest.transport import Transport

URL = "https://api.example.com/v1/products"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _descriptor(
    method: str = "GET",
    url: str = URL,
    query: dict[str, Any] | None = None,
    resource: str = "products",
    **kwargs: Any,
) -> RequestDescriptor:
    return RequestDescriptor(
        method=method, url=url, query=query or {}, resource=resource, **kwargs
    )


def _transport(status: int = 200, json: Any = None) -> MagicMock:
    transport = MagicMock(spec=Transport)
    transport.execute.side_effect = lambda request: httpx.Response(
        status, json=json if json is not None else {"ok": True}
    )
    return transport


def _fallback(response: httpx.Response, request: RequestDescriptor) -> dict[str, Any]:
    return {"body": response.json(), "headers": {}}


class SpyCache(MemoryCache):
    """MemoryCache that counts reads and writes."""

    def __init__(self) -> None:
        super().__init__()
        self.reads = 0
        self.writes = 0

    def get(self, key: str, default: Any = None) -> Any:
        self.reads += 1
        return super().get(key, default)

    def remember(self, key: str, value: Any, tags: Any = ()) -> Any:
        self.writes += 1
        return super().remember(key, value, tags)


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


class TestMakeKey:
    def test_param_order_does_not_matter(self) -> None:
        a = _descriptor(query={"limit": 10, "sort": "price"})
        b = _descriptor(query={"sort": "price", "limit": 10})
        assert MemoryCache.make_key(a) == MemoryCache.make_key(b)

    def test_query_in_url_and_mapping_are_equivalent(self) -> None:
        a = _descriptor(url=f"{URL}?limit=10", query={"sort": "price"})
        b = _descriptor(query={"limit": 10, "sort": "price"})
        assert MemoryCache.make_key(a) == MemoryCache.make_key(b)

    @pytest.mark.parametrize(
        "other",
        [
            _descriptor(method="POST"),
            _descriptor(url="https://other.example.com/v1/products"),
            _descriptor(url=f"{URL}/42"),
            _descriptor(query={"limit": 20}),
        ],
    )
    def test_distinct_requests_have_distinct_keys(self, other: RequestDescriptor) -> None:
        base = _descriptor(query={"limit": 10})
        assert MemoryCache.make_key(base) != MemoryCache.make_key(other)

    def test_queue_name_does_not_affect_key(self) -> None:
        a = _descriptor(queue_name="first")
        b = _descriptor()
        assert MemoryCache.make_key(a) == MemoryCache.make_key(b)

    def test_key_is_sha1_hex(self) -> None:
        key = MemoryCache.make_key(_descriptor())
        assert len(key) == 40
        int(key, 16)


# ---------------------------------------------------------------------------
# run()
# ---------------------------------------------------------------------------


class TestRun:
    def test_miss_then_hit(self) -> None:
        transport = _transport(json={"id": 1})
        cache = MemoryCache().bind(transport)
        request = _descriptor()

        first = cache.run(request, _fallback)
        second = cache.run(request, _fallback)

        assert first == second == {"body": {"id": 1}, "headers": {}}
        assert transport.execute.call_count == 1

    def test_disabled_bypasses_cache(self) -> None:
        transport = _transport()
        cache = SpyCache()
        cache.bind(transport)
        request = _descriptor()

        cache.run(request, _fallback, cache_enabled=False)
        cache.run(request, _fallback, cache_enabled=False)

        assert transport.execute.call_count == 2
        assert cache.reads == 0
        assert cache.writes == 0

    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE"])
    def test_non_get_is_never_cached(self, method: str) -> None:
        transport = _transport()
        cache = SpyCache()
        cache.bind(transport)

        cache.run(_descriptor(method=method), _fallback)

        assert cache.writes == 0
        assert len(cache) == 0

    def test_fallback_error_stores_nothing(self) -> None:
        transport = _transport(status=404)
        cache = MemoryCache().bind(transport)

        def _raise(response: httpx.Response, request: RequestDescriptor) -> Any:
            raise NotFoundError("HTTP 404")

        with pytest.raises(NotFoundError):
            cache.run(_descriptor(), _raise)
        assert len(cache) == 0

    def test_unbound_cache_fails_loudly(self) -> None:
        with pytest.raises(AssertionError, match="not bound"):
            MemoryCache().run(_descriptor(), _fallback)

    def test_hit_is_logged(self, verbose_output, capfd) -> None:
        cache = MemoryCache().bind(_transport())
        cache.run(_descriptor(), _fallback)
        cache.run(_descriptor(), _fallback)
        assert "[debug] Cache hit: GET" in capfd.readouterr().err


class TestPeekAndSave:
    def test_peek_does_not_execute(self) -> None:
        transport = _transport()
        cache = MemoryCache().bind(transport)
        assert cache.peek(_descriptor()) is None
        transport.execute.assert_not_called()

    def test_save_then_peek(self) -> None:
        cache = MemoryCache()
        cache.save(_descriptor(), {"body": 1})
        assert cache.peek(_descriptor()) == {"body": 1}

    def test_save_ignores_non_get(self) -> None:
        cache = MemoryCache()
        cache.save(_descriptor(method="POST"), {"body": 1})
        assert len(cache) == 0


# ---------------------------------------------------------------------------
# NoCache
# ---------------------------------------------------------------------------


class TestNoCache:
    def test_always_executes(self) -> None:
        transport = _transport()
        cache = NoCache().bind(transport)
        cache.run(_descriptor(), _fallback)
        cache.run(_descriptor(), _fallback)
        assert transport.execute.call_count == 2

    def test_save_is_discarded(self) -> None:
        cache = NoCache()
        assert cache.save(_descriptor(), {"body": 1}) == {"body": 1}
        assert cache.peek(_descriptor()) is None

    def test_not_tagged(self) -> None:
        assert not isinstance(NoCache(), TaggedCache)


# ---------------------------------------------------------------------------
# MemoryCache
# ---------------------------------------------------------------------------


class TestMemoryCache:
    def test_ttl_expiry(self, monkeypatch: pytest.MonkeyPatch) -> None:
        now = [1000.0]
        monkeypatch.setattr("fluentrest.cache.memory.time.monotonic", lambda: now[0])
        cache = MemoryCache(ttl_seconds=60)
        cache.remember("k", "v")
        now[0] += 59
        assert cache.get("k") == "v"
        now[0] += 2
        assert cache.get("k") is None

    def test_no_ttl_keeps_entries(self) -> None:
        cache = MemoryCache()
        cache.remember("k", "v")
        assert cache.get("k") == "v"

    def test_tags_follow_resource(self) -> None:
        cache = MemoryCache()
        assert cache.get_tags(_descriptor(resource="products")) == ["products"]
        assert cache.get_tags(_descriptor(resource="")) == []

    def test_invalidate_tags(self) -> None:
        cache = MemoryCache()
        cache.save(_descriptor(query={"page": 1}), "p1")
        cache.save(_descriptor(query={"page": 2}), "p2")
        cache.save(_descriptor(url="https://api.example.com/v1/offers", resource="offers"), "o")

        assert cache.invalidate_tags(["products"]) == 2
        assert len(cache) == 1
        assert cache.invalidate_tags(["products"]) == 0

    def test_clear_and_stats(self) -> None:
        cache = MemoryCache(ttl_seconds=10)
        cache.remember("a", 1)
        assert cache.stats() == {"size": 1, "ttl_seconds": 10}
        cache.clear()
        assert cache.stats()["size"] == 0


# ---------------------------------------------------------------------------
# DiskCache
# ---------------------------------------------------------------------------


class TestDiskCache:
    def test_roundtrip(self, tmp_path) -> None:
        cache = DiskCache(tmp_path, ttl_seconds=None)
        cache.save(_descriptor(), {"body": {"id": 1}, "headers": {}})
        assert cache.peek(_descriptor()) == {"body": {"id": 1}, "headers": {}}
        cache.close()

    def test_persists_across_instances(self, tmp_path) -> None:
        first = DiskCache(tmp_path)
        first.save(_descriptor(), "value")
        first.close()

        second = DiskCache(tmp_path)
        assert second.peek(_descriptor()) == "value"
        second.close()

    def test_invalidate_tags(self, tmp_path) -> None:
        cache = DiskCache(tmp_path)
        cache.save(_descriptor(query={"page": 1}), "p1")
        cache.save(_descriptor(query={"page": 2}), "p2")
        assert cache.stats()["size"] == 2
        assert cache.invalidate_tags(["products"]) == 2
        assert cache.peek(_descriptor(query={"page": 1})) is None
        assert cache.stats()["size"] == 0
        cache.close()

    def test_stats_and_clear(self, tmp_path) -> None:
        cache = DiskCache(tmp_path, ttl_seconds=120)
        stats = cache.stats()
        assert stats["size"] == 0
        assert stats["ttl_seconds"] == 120
        assert stats["directory"] == str(tmp_path / "responses")
        cache.remember("k", "v")
        cache.clear()
        assert cache.get("k") is None
        cache.close()


# ---------------------------------------------------------------------------
# create_cache
# ---------------------------------------------------------------------------


class TestCreateCache:
    def test_none(self) -> None:
        assert isinstance(create_cache(CacheConfig()), NoCache)

    def test_memory(self) -> None:
        cache = create_cache(CacheConfig(backend="memory", ttl_seconds=5))
        assert isinstance(cache, MemoryCache)
        assert cache.stats()["ttl_seconds"] == 5

    def test_disk_uses_default_dir(self, tmp_path) -> None:
        cache = create_cache(CacheConfig(backend="disk"), default_dir=tmp_path)
        assert isinstance(cache, DiskCache)
        cache.close()

    def test_disk_without_directory(self) -> None:
        with pytest.raises(ConfigError, match="requires a directory"):
            create_cache(CacheConfig(backend="disk"))

    def test_unknown_backend(self) -> None:
        with pytest.raises(ConfigError, match="Unknown cache backend"):
            create_cache(CacheConfig(backend="redis"))
