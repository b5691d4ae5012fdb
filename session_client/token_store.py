"""
Persistent store for the session credential pair.
Three string entries under fixed keys: access_token, refresh_token, token_type.
A missing entry is a normal logged-out state, not an error.
"""
import threading
from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from session_client.config import ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, TOKEN_TYPE_KEY
from session_client.models import StoredCredential

CREDENTIAL_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, TOKEN_TYPE_KEY)


@dataclass
class CredentialPair:
    access_token: str | None = None
    refresh_token: str | None = None
    token_type: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.access_token is None and self.refresh_token is None


def _entries(access_token: str, refresh_token: str | None, token_type: str | None) -> dict[str, str]:
    """Entries to write on save. Omitted optional values keep whatever is stored."""
    entries = {ACCESS_TOKEN_KEY: access_token}
    if refresh_token:
        entries[REFRESH_TOKEN_KEY] = refresh_token
    if token_type:
        entries[TOKEN_TYPE_KEY] = token_type
    return entries


class TokenStore:
    """Base store. Subclasses implement get, _write and clear."""

    def get(self, key: str) -> str | None:
        raise NotImplementedError

    def _write(self, entries: dict[str, str]) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def load(self) -> CredentialPair:
        return CredentialPair(
            access_token=self.get(ACCESS_TOKEN_KEY),
            refresh_token=self.get(REFRESH_TOKEN_KEY),
            token_type=self.get(TOKEN_TYPE_KEY),
        )

    def save(self, access_token: str, refresh_token: str | None = None, token_type: str | None = None) -> None:
        """Write access token (and refresh token / type if given) as one unit."""
        if not access_token:
            raise ValueError("access_token is required")
        self._write(_entries(access_token, refresh_token, token_type))


class MemoryTokenStore(TokenStore):
    """Process-local store. Useful for tests and short-lived clients."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = {k: v for k, v in (initial or {}).items() if k in CREDENTIAL_KEYS}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def _write(self, entries: dict[str, str]) -> None:
        with self._lock:
            self._data.update(entries)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class SqlTokenStore(TokenStore):
    """Store backed by the stored_credentials table; each save commits in one transaction."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, key: str) -> str | None:
        db: Session = self._session_factory()
        try:
            row = db.get(StoredCredential, key)
            return row.value if row else None
        finally:
            db.close()

    def _write(self, entries: dict[str, str]) -> None:
        db: Session = self._session_factory()
        try:
            for key, value in entries.items():
                row = db.get(StoredCredential, key)
                if row is None:
                    db.add(StoredCredential(key=key, value=value))
                else:
                    row.value = value
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def clear(self) -> None:
        db: Session = self._session_factory()
        try:
            db.query(StoredCredential).filter(StoredCredential.key.in_(CREDENTIAL_KEYS)).delete(
                synchronize_session=False
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
