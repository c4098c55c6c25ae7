"""HTTP client for purging cached subtitles from a running proxy."""

from typing import Any, Dict, Optional

import requests

from .proxy import API_KEY_HEADER, PATH_PREFIX, PURGE_FLAG


class PurgeClientError(Exception):
    """Error communicating with the proxy."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PurgeClient:
    """Client for the proxy's purge endpoint.

    Attributes:
        base_url: Base URL of the proxy
        timeout: Request timeout in seconds
    """

    def __init__(self, base_url: str, api_key: str, timeout: int = 30):
        """Initialize the purge client.

        Args:
            base_url: Base URL of the proxy
            api_key: Purge API key
            timeout: Request timeout in seconds

        Raises:
            ValueError: If api_key is empty
        """
        if not api_key:
            raise ValueError(
                "API key is not set. Pass --api-key or set DEEPSRT_API_KEY."
            )

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._api_key = api_key

    def url_for(self, path: str) -> str:
        """Proxy URL for a subtitle path such as ``foo.srt`` or ``/srt/foo.srt``."""
        path = path.lstrip("/")
        prefix = PATH_PREFIX.lstrip("/")
        if path.startswith(prefix):
            path = path[len(prefix):]
        return f"{self.base_url}{PATH_PREFIX}{path}"

    def purge(self, path: str) -> Dict[str, Any]:
        """Purge one subtitle from the proxy cache.

        Args:
            path: Subtitle path

        Returns:
            Purge report from the proxy

        Raises:
            PurgeClientError: If the key is rejected or the request fails
        """
        try:
            response = requests.get(
                self.url_for(path),
                params={PURGE_FLAG: ""},
                headers={API_KEY_HEADER: self._api_key},
                timeout=self.timeout,
            )

            if response.status_code == 401:
                raise PurgeClientError("Invalid API key", status_code=401)

            response.raise_for_status()
            return response.json()
        except requests.exceptions.ConnectionError as e:
            raise PurgeClientError(f"Cannot connect to proxy at {self.base_url}: {e}")
        except requests.exceptions.RequestException as e:
            status_code = e.response.status_code if e.response is not None else None
            raise PurgeClientError(f"Purge failed: {e}", status_code=status_code)
