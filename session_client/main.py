"""
Session service: a small local HTTP surface over the token manager.
Store the credential pair after login, inspect/refresh/clear the session, and proxy
authenticated GETs to the platform API (refresh + one retry on 401).
"""
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, HTTPException, Request, Response
from pydantic import BaseModel

from session_client import claims
from session_client.auth_cache import AccessTokenCache
from session_client.authenticated import AuthenticatedClient
from session_client.config import API_BASE_URL, TOKEN_TYPE_KEY
from session_client.database import SessionLocal, init_db
from session_client.token_manager import TokenManager
from session_client.token_store import SqlTokenStore

logger = logging.getLogger(__name__)


class SessionTokens(BaseModel):
    access_token: str
    refresh_token: str | None = None
    token_type: str | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the credentials table on startup."""
    init_db()
    yield


app = FastAPI(title="Session Client", version="0.1.0", lifespan=lifespan)

# One store/cache/manager per process; tests may swap these on app.state
app.state.store = SqlTokenStore(SessionLocal)
app.state.cache = AccessTokenCache(app.state.store)
app.state.manager = TokenManager(app.state.store, cache=app.state.cache)
app.state.http_client = None


def _session_status(request: Request) -> dict:
    state = request.app.state
    token = state.cache.get_access_token()
    if not token:
        return {"authenticated": False, "token_type": None, "expires_at": None, "expiring_soon": None}
    expires_ms = claims.expiration_time(token)
    return {
        "authenticated": True,
        "token_type": state.store.get(TOKEN_TYPE_KEY),
        "expires_at": expires_ms / 1000 if expires_ms is not None else None,
        "expiring_soon": state.manager.is_expiring_soon(token, state.manager.refresh_threshold_minutes),
    }


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "session_client"}


@app.get("/session")
def get_session(request: Request):
    """Current session status (no token values are returned)."""
    return _session_status(request)


@app.post("/session", status_code=204)
def store_session(tokens: SessionTokens, request: Request):
    """Store the credential pair handed over by the login flow."""
    if not tokens.access_token:
        raise HTTPException(
            status_code=400,
            detail={"error": "invalid_request", "error_description": "access_token is required"},
        )
    request.app.state.store.save(
        tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type=tokens.token_type,
    )
    request.app.state.cache.invalidate()
    return Response(status_code=204)


@app.delete("/session", status_code=204)
def sign_out(request: Request):
    """Sign out: drop stored credentials and cached token."""
    request.app.state.store.clear()
    request.app.state.cache.invalidate()
    return Response(status_code=204)


@app.post("/session/refresh")
async def refresh_session(request: Request):
    """Force a renewal with the stored refresh token."""
    token = await request.app.state.manager.refresh()
    if not token:
        raise HTTPException(
            status_code=401,
            detail={"error": "refresh_failed", "error_description": "Could not renew access token"},
        )
    return _session_status(request)


@app.get("/proxy/{path:path}")
async def proxy(path: str, request: Request):
    """Authenticated GET to the platform API; relays status and body."""
    client = AuthenticatedClient(request.app.state.manager, http_client=request.app.state.http_client)
    try:
        r = await client.get(f"{API_BASE_URL}/{path}", params=request.query_params.multi_items())
    except httpx.HTTPError as e:
        logger.warning("Proxy request to %s failed: %s", path, e)
        raise HTTPException(
            status_code=502,
            detail={"error": "upstream_unavailable", "error_description": "Upstream request failed"},
        )
    return Response(
        content=r.content,
        status_code=r.status_code,
        media_type=r.headers.get("content-type"),
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "session_client.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
