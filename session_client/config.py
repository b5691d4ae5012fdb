"""
Session client configuration. Values come from the environment; no secrets in this file.
"""
import os
import re


def normalize_base_url(base: str) -> str:
    """
    Normalize the API base so paths can be appended safely.
    Empty or "/" means relative to the current origin (""); a bare host gets https://.
    """
    if not base or base == "/":
        return ""
    trimmed = base.strip()
    if re.match(r"^https?://", trimmed, re.IGNORECASE):
        return trimmed.rstrip("/")
    if re.match(r"^[^/:]+(:\d+)?$", trimmed):
        return f"https://{trimmed}"
    return trimmed.rstrip("/")


# Platform API (renewal endpoint lives at {API_BASE_URL}/auth/refresh)
API_BASE_URL = normalize_base_url(os.environ.get("SESSION_API_BASE_URL", "http://localhost:8001/api/v1"))

# Where the credential pair is persisted between runs
DATABASE_URL = os.environ.get("SESSION_DATABASE_URL", "sqlite:///./session_client.db")

# Renew proactively when the access token expires within this many minutes
REFRESH_THRESHOLD_MINUTES = float(os.environ.get("SESSION_REFRESH_THRESHOLD_MINUTES", "2"))

# Lifetime of cached access-token reads (auth_cache)
CACHE_TTL_SECONDS = float(os.environ.get("SESSION_CACHE_TTL_SECONDS", "300"))

# Lifetime of cached successful GET responses (AuthenticatedClient.get_cached)
GET_CACHE_TTL_SECONDS = float(os.environ.get("SESSION_GET_CACHE_TTL_SECONDS", "60"))

# Timeout for renewal and proxied calls (seconds)
HTTP_TIMEOUT = float(os.environ.get("SESSION_HTTP_TIMEOUT", "10.0"))

# Fixed storage keys for the credential pair
ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
TOKEN_TYPE_KEY = "token_type"
