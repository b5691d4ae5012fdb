"""
Authenticated requests: attach the bearer token, and on 401 refresh and retry once.
Otherwise behaves like a plain httpx call (same arguments, same response, same errors).
"""
import logging
from typing import Any

import httpx

from session_client.config import HTTP_TIMEOUT
from session_client.response_cache import ResponseCache, cache_key
from session_client.token_manager import TokenManager

logger = logging.getLogger(__name__)


def _with_auth(headers: Any, token: str | None) -> httpx.Headers:
    merged = httpx.Headers(headers)
    if token:
        merged["Authorization"] = f"Bearer {token}"
    return merged


class AuthenticatedClient:
    def __init__(
        self,
        manager: TokenManager,
        http_client: httpx.AsyncClient | None = None,
        response_cache: ResponseCache | None = None,
    ):
        self.manager = manager
        self.response_cache = response_cache if response_cache is not None else ResponseCache()
        self._http_client = http_client

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Send the request with the current access token. If the server answers 401 and we
        sent a token, force one refresh and replay the request once with the new token.
        The original 401 is returned when the refresh fails.
        """
        headers = kwargs.pop("headers", None)
        token = await self.manager.get_valid_access_token()
        response = await self._send(method, url, _with_auth(headers, token), **kwargs)

        if response.status_code == 401 and token:
            logger.info("Received 401 from %s; refreshing token and retrying once", url)
            new_token = await self.manager.refresh()
            if new_token:
                response = await self._send(method, url, _with_auth(headers, new_token), **kwargs)
            else:
                logger.warning("Token refresh failed after 401; returning original response")
        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def get_cached(self, url: str, ttl_seconds: float | None = None, **kwargs: Any) -> httpx.Response:
        """
        GET served from the response cache while fresh. Only 2xx responses are cached,
        so errors and 401s are always retried against the server.
        """
        key = cache_key(url, kwargs.get("params"), kwargs.get("headers"))
        cached = self.response_cache.get(key)
        if cached is not None:
            return cached
        response = await self.get(url, **kwargs)
        if response.is_success:
            self.response_cache.put(key, response, ttl_seconds)
        return response

    def clear_cache(self, prefix: str | None = None) -> None:
        self.response_cache.clear(prefix)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def _send(self, method: str, url: str, headers: httpx.Headers, **kwargs: Any) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.request(method, url, headers=headers, **kwargs)
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
            return await client.request(method, url, headers=headers, **kwargs)


async def authenticated_fetch(
    manager: TokenManager,
    method: str,
    url: str,
    *,
    http_client: httpx.AsyncClient | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """One-off authenticated request; see AuthenticatedClient.request."""
    return await AuthenticatedClient(manager, http_client=http_client).request(method, url, **kwargs)
