"""Shared fixtures for proxy tests."""

from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient

from deepsrt_proxy.config import Settings
from deepsrt_proxy.main import create_app
from deepsrt_proxy.storage.cache import CacheStorage
from deepsrt_proxy.storage.r2 import StoredObject

TEST_API_KEY = "test-api-key"


class FakeBucket:
    """In-memory object store recording every key requested."""

    def __init__(self, objects: Optional[Dict[str, bytes]] = None):
        self.objects = dict(objects or {})
        self.requested = []

    async def get(self, key: str) -> Optional[StoredObject]:
        self.requested.append(key)
        if key not in self.objects:
            return None
        return StoredObject(key=key, body=self.objects[key])


@pytest.fixture
def settings():
    """Settings with a known API key and no dev mode."""
    return Settings(API_KEY=TEST_API_KEY, CACHE_MAX_AGE_SECONDS=604800, IS_DEV=False)


@pytest.fixture
def bucket():
    """Bucket holding a single subtitle."""
    return FakeBucket({"srt/foo.srt": b"hello"})


@pytest.fixture
def caches():
    """In-memory cache service."""
    return CacheStorage.in_memory()


@pytest.fixture
def client(settings, bucket, caches):
    """Test client for a fully wired proxy."""
    return TestClient(create_app(settings=settings, bucket=bucket, caches=caches))
