"""
Short-lived in-memory cache of the stored access token for read-mostly callers.
Cleared by the token manager after a renewal and by sign-out.
"""
import time
from collections.abc import Callable
from dataclasses import dataclass

from session_client.config import ACCESS_TOKEN_KEY, CACHE_TTL_SECONDS
from session_client.token_store import TokenStore


@dataclass
class _CachedToken:
    value: str | None
    expires_at: float


class AccessTokenCache:
    def __init__(
        self,
        store: TokenStore,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock
        self._cached = _CachedToken(value=None, expires_at=0.0)

    def get_access_token(self) -> str | None:
        """
        Cached access token while fresh; otherwise re-read the store.
        A missing token is never served from cache, so a fresh login is seen immediately.
        """
        now = self._clock()
        if self._cached.value is not None and self._cached.expires_at > now:
            return self._cached.value
        token = self._store.get(ACCESS_TOKEN_KEY)
        self._cached = _CachedToken(value=token, expires_at=now + self._ttl)
        return token

    def get_session(self) -> dict:
        """Same data in the {"session": {"access_token": ...}} shape older callers expect."""
        token = self.get_access_token()
        return {"session": {"access_token": token} if token else None}

    def invalidate(self) -> None:
        self._cached = _CachedToken(value=None, expires_at=0.0)
