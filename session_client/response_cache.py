"""
In-memory TTL cache of successful GET responses, keyed by URL, query params and caller headers.
Entries can be dropped all at once or by URL substring after a write.
"""
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from session_client.config import GET_CACHE_TTL_SECONDS


@dataclass
class _CachedResponse:
    response: httpx.Response
    expires_at: float


def cache_key(url: str, params: Any = None, headers: Any = None) -> str:
    # Authorization is added per request by the client, so it never takes part in the key
    query = str(httpx.QueryParams(params)) if params else ""
    header_items = sorted(httpx.Headers(headers).multi_items()) if headers else []
    return f"{url}?{query}::{header_items}"


class ResponseCache:
    def __init__(
        self,
        ttl_seconds: float = GET_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _CachedResponse] = {}

    def get(self, key: str) -> httpx.Response | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry.response

    def put(self, key: str, response: httpx.Response, ttl_seconds: float | None = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = _CachedResponse(response=response, expires_at=self._clock() + ttl)

    def clear(self, prefix: str | None = None) -> None:
        """Drop everything, or only entries whose key contains `prefix`."""
        if not prefix:
            self._entries.clear()
            return
        for key in [k for k in self._entries if prefix in k]:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)
