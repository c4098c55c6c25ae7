"""Request handling for the subtitle proxy.

Every request ends in exactly one of: not found, purge (accepted or
denied), cache hit, cache miss served from R2, or internal error.
"""

import logging
import secrets
from typing import Optional, Tuple
from urllib.parse import quote

from starlette.datastructures import URL
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from .config import Settings
from .models import ErrorResponse, PurgeOutcome, PurgeResponse
from .storage.cache import CachedResponse, CacheStorage, ResponseCache
from .storage.r2 import ObjectStore
from .tasks import detach

logger = logging.getLogger(__name__)

PATH_PREFIX = "/srt/"
STORAGE_NAMESPACE = "srt/"
PURGE_FLAG = "purge"
API_KEY_HEADER = "X-Api-Key"

# Characters left as-is when re-quoting a raw request path
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}


def request_path(request: Request) -> str:
    """Percent-encoded request path, as the client sent it.

    Starlette decodes ``scope["path"]``, so the path is rebuilt from
    ``raw_path``. Bytes outside the URL-safe set are quoted, leaving
    existing escapes untouched.
    """
    raw_path = request.scope.get("raw_path")
    if raw_path is None:
        raw_path = request.scope["path"].encode("utf-8")
    return quote(raw_path.split(b"?", 1)[0], safe=_PATH_SAFE)


def cache_key_for(url: URL, path: Optional[str] = None) -> URL:
    """Canonical cache key: the request URL without its query string.

    ``path`` replaces the URL's path when given.
    """
    if path is not None:
        return url.replace(path=path, query="")
    return url.replace(query="")


def object_key_for(path: str) -> str:
    """Storage key for a request path under ``/srt/``."""
    return STORAGE_NAMESPACE + path[len(PATH_PREFIX):]


def not_found() -> Response:
    return PlainTextResponse("Not Found", status_code=404)


def _json_response(body: str, status_code: int = 200) -> Response:
    return Response(
        content=body,
        status_code=status_code,
        headers={"Content-Type": "application/json", **CORS_HEADERS},
    )


class SrtProxy:
    """Serves subtitle objects from a bucket through a response cache.

    Args:
        settings: Loaded configuration
        bucket: Object store holding ``srt/<key>`` objects
        caches: Cache service the active partition is taken from
    """

    def __init__(self, settings: Settings, bucket: ObjectStore, caches: CacheStorage):
        self.settings = settings
        self.bucket = bucket
        self.caches = caches

    async def handle(self, request: Request) -> Response:
        """Produce the response for one request."""
        path = request_path(request)

        if not path.startswith(PATH_PREFIX):
            return not_found()

        try:
            cache_key = cache_key_for(request.url, path)

            if PURGE_FLAG in request.query_params:
                return await self.purge(request, path, cache_key)

            return await self.fetch(path, cache_key)
        except Exception:
            logger.exception(f"Error serving {path}")
            return PlainTextResponse("Internal Server Error", status_code=500)

    def is_authorized(self, request: Request) -> bool:
        """Exact comparison of the API key header with the configured key."""
        expected = self.settings.API_KEY
        header_name = API_KEY_HEADER.lower().encode("latin-1")
        supplied = next((value for name, value in request.headers.raw if name == header_name), None)

        if not expected:
            logger.warning("Purge rejected: no API key configured")
            return False
        if supplied is None:
            return False
        return secrets.compare_digest(supplied, expected.encode("utf-8"))

    async def purge(self, request: Request, path: str, cache_key: URL) -> Response:
        """Delete the cache entry for this path if the caller is authorized."""
        if not self.is_authorized(request):
            body = ErrorResponse(error="Invalid API key").model_dump_json()
            return _json_response(body, status_code=401)

        deleted = False
        try:
            cache = await self.caches.select(self.settings)
            deleted = await cache.delete(str(cache_key))
        except Exception as e:
            logger.error(f"Cache delete failed for {cache_key}: {e}")

        logger.info(f"Purged {cache_key}: {'succeeded' if deleted else 'failed'}")

        result = PurgeResponse(
            path=path,
            purge_result=PurgeOutcome.SUCCEEDED if deleted else PurgeOutcome.FAILED,
            purged_cache_key=str(cache_key),
        )
        return _json_response(result.model_dump_json(by_alias=True, indent=2))

    async def lookup(self, cache_key: URL) -> Tuple[Optional[ResponseCache], Optional[CachedResponse]]:
        """Open the active cache and look up ``cache_key``.

        Failures are logged and reported as a miss. The cache handle is
        returned whenever it could be opened so a miss can still be stored.
        """
        cache = None
        try:
            cache = await self.caches.select(self.settings)
            return cache, await cache.match(str(cache_key))
        except Exception as e:
            logger.error(f"Cache lookup failed: {e}")
            return cache, None

    async def fetch(self, path: str, cache_key: URL) -> Response:
        """Serve from cache, falling back to the bucket on a miss."""
        cache, cached = await self.lookup(cache_key)

        if cached is not None:
            logger.debug(f"Cache HIT {cache_key}")
            headers = dict(cached.headers)
            headers["X-Cache-Status"] = "HIT"
            headers["X-Cache-Key"] = str(cache_key)
            return Response(content=cached.body, status_code=cached.status, headers=headers)

        obj = await self.bucket.get(object_key_for(path))
        if obj is None:
            return not_found()

        max_age = self.settings.CACHE_MAX_AGE_SECONDS
        headers = {
            "Content-Type": "text/plain; charset=utf-8",
            "Cache-Control": f"public, max-age={max_age}",
            **CORS_HEADERS,
            "X-Cache-Status": "MISS",
            "X-Cache-Key": str(cache_key),
            "X-Cache-Duration": f"{max_age} seconds",
        }

        logger.debug(f"Cache MISS {cache_key}")

        background = None
        if cache is not None:
            entry = CachedResponse(body=obj.body, status=200, status_text="OK", headers=dict(headers))
            background = detach(cache.put, str(cache_key), entry, description=f"Cache put for {cache_key}")

        return Response(content=obj.body, status_code=200, headers=headers, background=background)
