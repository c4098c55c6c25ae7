"""Tests for response cache backends."""

import json
from unittest.mock import patch

import pytest

from deepsrt_proxy.config import Settings
from deepsrt_proxy.storage.cache import (
    CachedResponse,
    CacheStorage,
    DiskResponseCache,
    MemoryResponseCache,
)

KEY = "http://example.com/srt/foo.srt"


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def make_response(cache_control="public, max-age=60", body=b"hello"):
    return CachedResponse(
        body=body,
        headers={"Content-Type": "text/plain; charset=utf-8", "Cache-Control": cache_control},
    )


class TestCachedResponse:
    """Test CachedResponse helpers."""

    def test_header_lookup_case_insensitive(self):
        """Header lookup ignores case."""
        response = make_response()
        assert response.header("cache-control") == "public, max-age=60"
        assert response.header("X-Missing") is None

    def test_max_age(self):
        """Max-age is parsed from Cache-Control."""
        assert make_response("public, max-age=604800").max_age == 604800
        assert make_response("public").max_age is None

    def test_no_store_not_storable(self):
        """no-store responses are not storable."""
        assert make_response("no-store").storable is False
        assert make_response().storable is True

    def test_copy_is_independent(self):
        """Copies do not share the headers dict."""
        original = make_response()
        copy = original.copy()
        copy.headers["X-Cache-Status"] = "HIT"
        assert "X-Cache-Status" not in original.headers


class TestMemoryResponseCache:
    """Test the in-memory cache partition."""

    @pytest.mark.asyncio
    async def test_put_and_match(self):
        """Stored responses are returned on match."""
        cache = MemoryResponseCache()
        assert await cache.match(KEY) is None

        await cache.put(KEY, make_response())
        cached = await cache.match(KEY)

        assert cached is not None
        assert cached.body == b"hello"
        assert cached.status == 200

    @pytest.mark.asyncio
    async def test_expires_after_max_age(self):
        """Entries expire once max-age has passed."""
        clock = FakeClock()
        cache = MemoryResponseCache(clock=clock)
        await cache.put(KEY, make_response("public, max-age=60"))

        clock.now += 59
        assert await cache.match(KEY) is not None

        clock.now += 1
        assert await cache.match(KEY) is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_no_max_age_never_expires(self):
        """Entries without max-age stay until deleted."""
        clock = FakeClock()
        cache = MemoryResponseCache(clock=clock)
        await cache.put(KEY, make_response("public"))

        clock.now += 10 ** 9
        assert await cache.match(KEY) is not None

    @pytest.mark.asyncio
    async def test_no_store_skipped(self):
        """no-store responses are not kept."""
        cache = MemoryResponseCache()
        await cache.put(KEY, make_response("no-store"))
        assert await cache.match(KEY) is None

    @pytest.mark.asyncio
    async def test_delete(self):
        """Delete reports whether an entry was removed."""
        cache = MemoryResponseCache()
        await cache.put(KEY, make_response())

        assert await cache.delete(KEY) is True
        assert await cache.delete(KEY) is False
        assert await cache.match(KEY) is None

    @pytest.mark.asyncio
    async def test_match_returns_copy(self):
        """Mutating a matched response does not change the cache."""
        cache = MemoryResponseCache()
        await cache.put(KEY, make_response())

        cached = await cache.match(KEY)
        cached.headers["X-Cache-Status"] = "HIT"

        again = await cache.match(KEY)
        assert "X-Cache-Status" not in again.headers


class TestDiskResponseCache:
    """Test the on-disk cache partition."""

    @pytest.mark.asyncio
    async def test_put_and_match(self, tmp_path):
        """Entries survive a new cache instance over the same directory."""
        await DiskResponseCache(tmp_path).put(KEY, make_response())

        cached = await DiskResponseCache(tmp_path).match(KEY)

        assert cached is not None
        assert cached.body == b"hello"
        assert cached.header("Cache-Control") == "public, max-age=60"

    @pytest.mark.asyncio
    async def test_file_layout(self, tmp_path):
        """Each entry is a metadata file plus a body file."""
        cache = DiskResponseCache(tmp_path)
        await cache.put(KEY, make_response())

        meta_files = list(tmp_path.glob("*.json"))
        body_files = list(tmp_path.glob("*.body"))
        assert len(meta_files) == 1
        assert len(body_files) == 1

        meta = json.loads(meta_files[0].read_text())
        assert meta["key"] == KEY
        assert meta["status"] == 200
        assert meta["expires_at"] == meta["stored_at"] + 60

    @pytest.mark.asyncio
    async def test_expiry(self, tmp_path):
        """Expired entries are treated as absent and removed."""
        clock = FakeClock()
        cache = DiskResponseCache(tmp_path, clock=clock)
        await cache.put(KEY, make_response("public, max-age=60"))

        clock.now += 60

        assert await cache.match(KEY) is None
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_overwrite_leaves_no_temp_files(self, tmp_path):
        """Rewriting an entry replaces both files in place."""
        cache = DiskResponseCache(tmp_path)
        await cache.put(KEY, make_response(body=b"first"))
        await cache.put(KEY, make_response(body=b"second"))

        cached = await cache.match(KEY)

        assert cached.body == b"second"
        assert sorted(p.suffix for p in tmp_path.iterdir()) == [".body", ".json"]

    @pytest.mark.asyncio
    async def test_body_without_matching_metadata_is_miss(self, tmp_path):
        """A body that does not match its metadata is never served."""
        cache = DiskResponseCache(tmp_path)
        await cache.put(KEY, make_response(body=b"first"))

        real_replace = cache._replace

        def fail_on_metadata(path, data):
            if path.suffix == ".json":
                raise OSError("disk full")
            real_replace(path, data)

        with patch.object(cache, "_replace", side_effect=fail_on_metadata):
            with pytest.raises(OSError):
                await cache.put(KEY, make_response(body=b"second"))

        assert await cache.match(KEY) is None

    @pytest.mark.asyncio
    async def test_failed_replace_removes_temp_file(self, tmp_path):
        """A temp file is cleaned up when it cannot be moved into place."""
        cache = DiskResponseCache(tmp_path)

        with patch("deepsrt_proxy.storage.cache.os.replace", side_effect=OSError("busy")):
            with pytest.raises(OSError):
                await cache.put(KEY, make_response())

        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_corrupt_metadata_is_miss(self, tmp_path):
        """Unreadable metadata is treated as a miss."""
        cache = DiskResponseCache(tmp_path)
        await cache.put(KEY, make_response())
        next(tmp_path.glob("*.json")).write_text("{not json")

        assert await cache.match(KEY) is None

    @pytest.mark.asyncio
    async def test_delete(self, tmp_path):
        """Delete removes both files and reports whether they existed."""
        cache = DiskResponseCache(tmp_path)
        await cache.put(KEY, make_response())

        assert await cache.delete(KEY) is True
        assert list(tmp_path.iterdir()) == []
        assert await cache.delete(KEY) is False

    @pytest.mark.asyncio
    async def test_missing_dir_is_miss(self, tmp_path):
        """A partition that was never written is empty."""
        cache = DiskResponseCache(tmp_path / "never-created")
        assert await cache.match(KEY) is None
        assert await cache.delete(KEY) is False


class TestCacheStorage:
    """Test partition selection."""

    @pytest.mark.asyncio
    async def test_open_is_memoized(self):
        """Opening the same name twice returns the same partition."""
        caches = CacheStorage.in_memory()
        assert await caches.open("a") is await caches.open("a")
        assert await caches.open("a") is not caches.default

    @pytest.mark.asyncio
    async def test_select_production(self):
        """Production mode uses the default partition."""
        caches = CacheStorage.in_memory()
        selected = await caches.select(Settings(IS_DEV=False))
        assert selected is caches.default

    @pytest.mark.asyncio
    async def test_select_dev(self):
        """Dev mode uses the named partition."""
        caches = CacheStorage.in_memory()
        selected = await caches.select(Settings(IS_DEV=True, DEV_CACHE_NAME="dev_cache"))
        assert selected is await caches.open("dev_cache")
        assert selected is not caches.default

    @pytest.mark.asyncio
    async def test_on_disk_partitions_are_subdirectories(self, tmp_path):
        """Disk partitions live in one subdirectory per name."""
        caches = CacheStorage.on_disk(tmp_path)

        await caches.default.put(KEY, make_response())
        await (await caches.open("dev_cache")).put(KEY, make_response())

        assert (tmp_path / "default").is_dir()
        assert (tmp_path / "dev_cache").is_dir()
