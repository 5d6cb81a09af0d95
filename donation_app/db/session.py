"""Database plumbing: one engine per process and a session per request."""

from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from ..core.config import settings

# Seconds a SQLite writer waits on another writer's lock before giving up.
SQLITE_LOCK_TIMEOUT = 15


def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    return {"connect_args": {"check_same_thread": False, "timeout": SQLITE_LOCK_TIMEOUT}}


engine = create_engine(settings.DB_URL, **_engine_options(settings.DB_URL))

if settings.is_sqlite:

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
        # Detail and stats rows must never point at a missing donation or item.
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=True)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
