"""
Tests for grounded_search/storage/cache/lru.py
"""

from unittest.mock import patch

import pytest


def _response(query="Klimaschutz", count=1):
    from grounded_search.core.types import RankedDocument, SearchResponse

    return SearchResponse(
        success=True,
        query=query,
        search_type="vector",
        results=[RankedDocument(document_id=f"doc-{i}") for i in range(count)],
        metadata={"cached": False},
    )


class TestFingerprint:
    """Tests for build_fingerprint."""

    def test_normalizes_query(self):
        """Test that case and whitespace do not change the key."""
        from grounded_search.storage.cache.lru import build_fingerprint

        assert build_fingerprint("Klima  Schutz", "u", "vector", 5, None) == build_fingerprint(
            " klima schutz ", "u", "vector", 5, None
        )

    def test_document_id_order_ignored(self):
        """Test that document id order and duplicates do not matter."""
        from grounded_search.storage.cache.lru import build_fingerprint

        first = build_fingerprint("q", "u", "vector", 5, 0.3, ["b", "a"])
        second = build_fingerprint("q", "u", "vector", 5, 0.3, ["a", "b", "a"])
        assert first == second

    @pytest.mark.parametrize(
        "changed",
        [
            {"owner_id": "other"},
            {"mode": "hybrid"},
            {"limit": 6},
            {"threshold": 0.4},
            {"document_ids": ["a"]},
            {"corpus": "grundsatz"},
            {"extra": {"keyword_fallback": False}},
        ],
    )
    def test_every_parameter_counts(self, changed):
        """Test that each request parameter is part of the key."""
        from grounded_search.storage.cache.lru import build_fingerprint

        base = {"query": "q", "owner_id": "u", "mode": "vector", "limit": 5, "threshold": 0.3}
        assert build_fingerprint(**base) != build_fingerprint(**{**base, **changed})

    def test_prefixed_with_corpus(self):
        """Test the readable corpus prefix."""
        from grounded_search.storage.cache.lru import build_fingerprint

        assert build_fingerprint("q", None, "vector", 5, None, corpus="grundsatz").startswith("grundsatz:")


class TestResultCache:
    """Tests for the ResultCache class."""

    def test_get_returns_copy(self, fake_clock):
        """Test that cached values cannot be mutated through the caller."""
        from grounded_search.storage.cache.lru import ResultCache

        cache = ResultCache(capacity=2, ttl_seconds=60, clock=fake_clock)
        original = _response()
        cache.set("k", original)
        original.results.clear()

        first = cache.get("k")
        first.metadata["cached"] = True

        second = cache.get("k")
        assert len(second.results) == 1
        assert second.metadata["cached"] is False

    def test_ttl_expiry(self, fake_clock):
        """Test that entries expire after their TTL."""
        from grounded_search.storage.cache.lru import ResultCache

        cache = ResultCache(capacity=2, ttl_seconds=60, clock=fake_clock)
        cache.set("k", _response())

        fake_clock.advance(59)
        assert cache.get("k") is not None
        assert "k" in cache

        fake_clock.advance(1)
        assert "k" not in cache
        assert cache.get("k") is None
        assert cache.get_stats()["expirations"] == 1
        assert len(cache) == 0

    def test_lru_eviction(self, fake_clock):
        """Test that the least recently used entry is evicted."""
        from grounded_search.storage.cache.lru import ResultCache

        cache = ResultCache(capacity=2, ttl_seconds=60, clock=fake_clock)
        cache.set("a", _response("a"))
        cache.set("b", _response("b"))
        cache.get("a")
        cache.set("c", _response("c"))

        assert cache.get("b") is None
        assert cache.get("a").query == "a"
        assert cache.get("c").query == "c"
        assert cache.get_stats()["evictions"] == 1

    def test_eviction_tracked(self, fake_clock):
        """Test that evictions are reported to metrics."""
        from grounded_search.storage.cache.lru import ResultCache

        cache = ResultCache(capacity=1, ttl_seconds=60, clock=fake_clock)
        with patch("grounded_search.storage.cache.lru.safe_track") as mock_track:
            cache.set("a", _response("a"))
            cache.set("b", _response("b"))

        mock_track.assert_called_once_with("track_cache_eviction", "search")

    def test_overwrite_refreshes_ttl(self, fake_clock):
        """Test that setting an existing key restarts its lifetime."""
        from grounded_search.storage.cache.lru import ResultCache

        cache = ResultCache(capacity=2, ttl_seconds=60, clock=fake_clock)
        cache.set("k", _response(count=1))
        fake_clock.advance(50)
        cache.set("k", _response(count=2))
        fake_clock.advance(50)

        assert len(cache.get("k").results) == 2
        assert len(cache) == 1

    def test_stats(self, fake_clock):
        """Test hit and miss accounting."""
        from grounded_search.storage.cache.lru import ResultCache

        cache = ResultCache(capacity=5, ttl_seconds=60, clock=fake_clock)
        cache.set("k", _response())
        cache.get("k")
        cache.get("missing")

        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5
        assert stats["size"] == 1
        assert stats["capacity"] == 5

    def test_delete_and_clear(self, fake_clock):
        """Test explicit removal."""
        from grounded_search.storage.cache.lru import ResultCache

        cache = ResultCache(capacity=5, ttl_seconds=60, clock=fake_clock)
        cache.set("a", _response())
        cache.set("b", _response())

        assert cache.delete("a") is True
        assert cache.delete("a") is False
        assert cache.clear() == 1
        assert len(cache) == 0

    @pytest.mark.parametrize("capacity,ttl", [(0, 60), (5, 0), (5, -1)])
    def test_invalid_configuration(self, capacity, ttl):
        """Test that unusable settings are rejected."""
        from grounded_search.core.exceptions import CacheError
        from grounded_search.storage.cache.lru import ResultCache

        with pytest.raises(CacheError):
            ResultCache(capacity=capacity, ttl_seconds=ttl)


class TestResultCacheThreads:
    """Tests for ResultCache under concurrent access."""

    def test_concurrent_get_and_set(self):
        """Test that readers only ever see complete entries."""
        from concurrent.futures import ThreadPoolExecutor

        from grounded_search.storage.cache.lru import ResultCache

        cache = ResultCache(capacity=4, ttl_seconds=60)
        keys = [f"key-{i}" for i in range(8)]
        rounds = 200

        def worker(offset):
            seen = []
            for n in range(rounds):
                i = (offset + n) % len(keys)
                cache.set(keys[i], _response(query=f"q{i}", count=i % 3 + 1))
                j = (offset + n * 3) % len(keys)
                cached = cache.get(keys[j])
                if cached is not None:
                    seen.append((j, cached.query, len(cached.results)))
            return seen

        with ThreadPoolExecutor(max_workers=8) as pool:
            observed = [item for seen in pool.map(worker, range(8)) for item in seen]

        for j, query, count in observed:
            assert query == f"q{j}"
            assert count == j % 3 + 1

        stats = cache.get_stats()
        assert stats["hits"] + stats["misses"] == 8 * rounds
        assert stats["hits"] == len(observed)
        assert stats["size"] <= 4
