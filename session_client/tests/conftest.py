"""
Pytest configuration for session_client. Use in-memory SQLite so tests don't touch the filesystem.
"""
import os
import time

import jwt
import pytest

# In-memory SQLite; database.py uses StaticPool so all connections share the same DB
os.environ["SESSION_DATABASE_URL"] = "sqlite:///:memory:"
# Tests build upstream URLs from the default base
if "SESSION_API_BASE_URL" in os.environ:
    del os.environ["SESSION_API_BASE_URL"]

TEST_SECRET = "session-client-test-secret-0123456789abcdef"


@pytest.fixture
def make_token():
    """Mint an HS256 JWT expiring `expires_in` seconds after `now` (default: current time)."""

    def _make(expires_in: float = 600, now: float | None = None, **extra) -> str:
        issued = time.time() if now is None else now
        payload = {"sub": "42", "iat": int(issued), "exp": int(issued + expires_in), **extra}
        return jwt.encode(payload, TEST_SECRET, algorithm="HS256")

    return _make
