"""
Database engine and session for the persisted credential pair. SQLite by default.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from session_client.config import DATABASE_URL
from session_client.models import Base

# ":memory:" credentials must survive across sessions, so pin a single connection (StaticPool).
# The session service touches the store from worker threads, hence check_same_thread=False.
if DATABASE_URL.startswith("sqlite:///:memory:"):
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    connect_args = {"check_same_thread": False} if "sqlite" in DATABASE_URL else {}
    engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create the credentials table if missing."""
    Base.metadata.create_all(bind=engine)
