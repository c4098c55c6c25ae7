"""Response cache backends.

The proxy talks to a cache through ``ResponseCache``: lookup, store and
delete by cache key. ``CacheStorage`` hands out cache partitions, either the
default one or a named one, the way an edge runtime's cache service does.
"""

import asyncio
import hashlib
import json
import os
import re
import tempfile
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Optional, Tuple

if TYPE_CHECKING:
    from ..config import Settings

DEFAULT_PARTITION = "default"

_MAX_AGE_RE = re.compile(r"max-age=(\d+)")


@dataclass
class CachedResponse:
    """A response as held in the cache.

    Attributes:
        body: Response body bytes
        status: HTTP status code
        status_text: HTTP reason phrase
        headers: Response headers
    """

    body: bytes
    status: int = 200
    status_text: str = "OK"
    headers: Dict[str, str] = field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    @property
    def max_age(self) -> Optional[int]:
        """Max-age from Cache-Control in seconds, or None."""
        match = _MAX_AGE_RE.search(self.header("Cache-Control") or "")
        return int(match.group(1)) if match else None

    @property
    def storable(self) -> bool:
        return "no-store" not in (self.header("Cache-Control") or "")

    def copy(self) -> "CachedResponse":
        return CachedResponse(
            body=self.body,
            status=self.status,
            status_text=self.status_text,
            headers=dict(self.headers),
        )


class ResponseCache(ABC):
    """A single cache partition."""

    @abstractmethod
    async def match(self, key: str) -> Optional[CachedResponse]:
        """Return the cached response for ``key``, or None."""

    @abstractmethod
    async def put(self, key: str, response: CachedResponse) -> None:
        """Store ``response`` under ``key``."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if an entry was removed."""


class MemoryResponseCache(ResponseCache):
    """In-process cache partition backed by a dict."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[CachedResponse, Optional[float]]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def match(self, key: str) -> Optional[CachedResponse]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        response, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return None
        return response.copy()

    async def put(self, key: str, response: CachedResponse) -> None:
        if not response.storable:
            return

        max_age = response.max_age
        expires_at = self._clock() + max_age if max_age is not None else None
        self._entries[key] = (response.copy(), expires_at)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None


class DiskResponseCache(ResponseCache):
    """Cache partition stored on local disk.

    Each entry is a ``<hash>.json`` metadata file next to a ``<hash>.body``
    file, where ``<hash>`` is the first 32 hex chars of the key's SHA-256.
    Both files are replaced atomically and the metadata records the body's
    digest, so a reader never pairs metadata with a different body.
    """

    def __init__(self, cache_dir: Path, clock: Callable[[], float] = time.time):
        """Initialize disk cache.

        Args:
            cache_dir: Directory for this partition
            clock: Wall clock used for expiry
        """
        self.cache_dir = Path(cache_dir)
        self._clock = clock

    def _paths(self, key: str) -> Tuple[Path, Path]:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]
        return self.cache_dir / f"{digest}.json", self.cache_dir / f"{digest}.body"

    def _read(self, key: str) -> Optional[CachedResponse]:
        meta_file, body_file = self._paths(key)
        if not meta_file.exists():
            return None

        try:
            meta = json.loads(meta_file.read_text())
            body = body_file.read_bytes()
        except (json.JSONDecodeError, IOError):
            return None

        if meta.get("key") != key:
            return None
        if meta.get("body_sha256") != hashlib.sha256(body).hexdigest():
            return None

        expires_at = meta.get("expires_at")
        if expires_at is not None and self._clock() >= expires_at:
            self._remove(key)
            return None

        return CachedResponse(
            body=body,
            status=meta["status"],
            status_text=meta.get("status_text", ""),
            headers=meta.get("headers", {}),
        )

    def _write(self, key: str, response: CachedResponse) -> None:
        if not response.storable:
            return

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        meta_file, body_file = self._paths(key)

        max_age = response.max_age
        now = self._clock()
        meta = {
            "key": key,
            "status": response.status,
            "status_text": response.status_text,
            "headers": response.headers,
            "body_sha256": hashlib.sha256(response.body).hexdigest(),
            "stored_at": now,
            "expires_at": now + max_age if max_age is not None else None,
        }

        self._replace(body_file, response.body)
        self._replace(meta_file, json.dumps(meta, indent=2).encode("utf-8"))

    def _replace(self, path: Path, data: bytes) -> None:
        with tempfile.NamedTemporaryFile(
            dir=self.cache_dir, prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as f:
            f.write(data)
            tmp = f.name

        try:
            os.replace(tmp, path)
        except OSError:
            os.unlink(tmp)
            raise

    def _remove(self, key: str) -> bool:
        meta_file, body_file = self._paths(key)
        existed = meta_file.exists()
        meta_file.unlink(missing_ok=True)
        body_file.unlink(missing_ok=True)
        return existed

    async def match(self, key: str) -> Optional[CachedResponse]:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._read, key)

    async def put(self, key: str, response: CachedResponse) -> None:
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self._write, key, response)

    async def delete(self, key: str) -> bool:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._remove, key)


class CacheStorage:
    """Registry of cache partitions.

    Args:
        factory: Builds the partition for a given name
    """

    def __init__(self, factory: Callable[[str], ResponseCache]):
        self._factory = factory
        self._partitions: Dict[str, ResponseCache] = {}

    @classmethod
    def in_memory(cls) -> "CacheStorage":
        return cls(lambda name: MemoryResponseCache())

    @classmethod
    def on_disk(cls, cache_dir: Path) -> "CacheStorage":
        root = Path(cache_dir)
        return cls(lambda name: DiskResponseCache(root / name))

    def _partition(self, name: str) -> ResponseCache:
        if name not in self._partitions:
            self._partitions[name] = self._factory(name)
        return self._partitions[name]

    @property
    def default(self) -> ResponseCache:
        return self._partition(DEFAULT_PARTITION)

    async def open(self, name: str) -> ResponseCache:
        """Open a named partition, creating it on first use."""
        return self._partition(name)

    async def select(self, settings: "Settings") -> ResponseCache:
        """Named dev partition in dev mode, default partition otherwise."""
        if settings.IS_DEV:
            return await self.open(settings.DEV_CACHE_NAME)
        return self.default
