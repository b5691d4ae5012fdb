"""
Session token manager: returns a usable access token, renewing it via the refresh token
before (or upon) expiry. Concurrent renewals are collapsed into one network call (single-flight).
One instance per process; pass it to whatever needs tokens.

Store reads and writes are synchronous and run on the event loop. That is fine for the
in-memory store and local SQLite; a networked SESSION_DATABASE_URL would block the loop
for the duration of each query.
"""
import asyncio
import logging
import time
from collections.abc import Callable

import httpx

from session_client import claims
from session_client.auth_cache import AccessTokenCache
from session_client.config import (
    ACCESS_TOKEN_KEY,
    API_BASE_URL,
    HTTP_TIMEOUT,
    REFRESH_THRESHOLD_MINUTES,
    REFRESH_TOKEN_KEY,
)
from session_client.token_store import TokenStore

logger = logging.getLogger(__name__)


class TokenManager:
    def __init__(
        self,
        store: TokenStore,
        *,
        base_url: str = API_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        cache: AccessTokenCache | None = None,
        refresh_threshold_minutes: float = REFRESH_THRESHOLD_MINUTES,
        timeout: float = HTTP_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.refresh_url = f"{base_url}/auth/refresh"
        self.cache = cache
        self.refresh_threshold_minutes = refresh_threshold_minutes
        self.refresh_count = 0  # network renewals dispatched
        self._http_client = http_client
        self._timeout = timeout
        self._clock = clock
        self._refresh_task: asyncio.Task | None = None

    def is_expired(self, token: str) -> bool:
        return claims.is_expired(token, now=self._clock())

    def is_expiring_soon(self, token: str, threshold_minutes: float = 5) -> bool:
        return claims.is_expiring_soon(token, threshold_minutes, now=self._clock())

    @property
    def refresh_in_progress(self) -> bool:
        return self._refresh_task is not None

    async def get_valid_access_token(self) -> str | None:
        """
        Stored access token, renewed first if it is expired or expires within the threshold.
        None when there is no token or renewal failed.
        """
        token = self.store.get(ACCESS_TOKEN_KEY)
        if not token:
            return None
        if self.is_expiring_soon(token, self.refresh_threshold_minutes):
            logger.info("Access token expired or expiring soon; refreshing")
            token = await self.refresh()
            if not token:
                logger.warning("Failed to refresh access token")
                return None
        return token

    async def refresh(self) -> str | None:
        """
        Renew the access token. If a renewal is already in flight, wait for that one
        instead of starting another; every waiter gets the same result.
        """
        task = self._refresh_task
        if task is None:
            task = asyncio.ensure_future(self._run_refresh())
            self._refresh_task = task
        else:
            logger.debug("Refresh already in progress; waiting for it")
        # Shield: a cancelled waiter must not cancel the renewal the others are waiting on
        return await asyncio.shield(task)

    async def _run_refresh(self) -> str | None:
        try:
            return await self._request_new_tokens()
        finally:
            self._refresh_task = None

    async def _request_new_tokens(self) -> str | None:
        """POST the refresh token; persist and return the new access token, or None on any failure."""
        refresh_token = self.store.get(REFRESH_TOKEN_KEY)
        if not refresh_token:
            logger.warning("No refresh token available")
            return None

        self.refresh_count += 1
        try:
            r = await self._post_refresh(refresh_token)
        except httpx.HTTPError as e:
            logger.warning("Token refresh request failed: %s", e)
            return None
        if not r.is_success:
            logger.warning("Token refresh failed with status %s", r.status_code)
            return None
        try:
            data = r.json()
        except ValueError:
            logger.warning("Token refresh returned a non-JSON body")
            return None

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token or not isinstance(access_token, str):
            logger.warning("Token refresh response has no access_token")
            return None
        new_refresh = data.get("refresh_token")
        token_type = data.get("token_type")
        # Refresh token rotation is optional: keep the old one if none came back
        self.store.save(
            access_token,
            refresh_token=new_refresh if isinstance(new_refresh, str) else None,
            token_type=token_type if isinstance(token_type, str) else None,
        )
        if self.cache is not None:
            self.cache.invalidate()
        logger.info("Access token refreshed")
        return access_token

    async def _post_refresh(self, refresh_token: str) -> httpx.Response:
        payload = {"refresh_token": refresh_token}
        headers = {"Accept": "application/json"}
        if self._http_client is not None:
            return await self._http_client.post(self.refresh_url, json=payload, headers=headers)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(self.refresh_url, json=payload, headers=headers)
