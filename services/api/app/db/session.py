"""Engine and session plumbing for the sandbox orders database.

Env vars:
- DATABASE_URL (default: sqlite file under .local/)
- DOORSTEP_DB_AUTO_CREATE (default: true) creates tables on startup
- DOORSTEP_DB_ECHO (default: false) logs SQL statements
"""

from __future__ import annotations

import logging
import os
from collections.abc import Generator
from pathlib import Path

from services.api.app.db.models import Base
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "y"}

_engine: Engine | None = None
_engine_url: str | None = None
_sessionmaker: sessionmaker | None = None


def database_url() -> str:
    url = os.getenv("DATABASE_URL", "").strip()
    if url:
        return url
    Path(".local").mkdir(exist_ok=True)
    return "sqlite+pysqlite:///.local/doorstep_sandbox.db"


def get_engine() -> Engine:
    """Engine for the current DATABASE_URL.

    Rebuilt whenever the URL changes, so each test can point at its own file.
    """

    global _engine, _engine_url, _sessionmaker

    url = database_url()
    if _engine is not None and _engine_url == url:
        return _engine

    if _engine is not None:
        _engine.dispose()

    is_sqlite = url.startswith("sqlite")
    _engine = create_engine(
        url,
        echo=_flag("DOORSTEP_DB_ECHO", "false"),
        connect_args={"check_same_thread": False} if is_sqlite else {},
    )
    if is_sqlite:
        # Orders reference their draft; SQLite only enforces that when asked.
        event.listen(_engine, "connect", _enable_sqlite_foreign_keys)

    _engine_url = url
    _sessionmaker = sessionmaker(
        bind=_engine, class_=Session, autoflush=False, expire_on_commit=False
    )
    safe_url = _engine.url.render_as_string(hide_password=True)
    logger.info(f"Sandbox database engine ready: {safe_url}")
    return _engine


def init_db() -> None:
    if not _flag("DOORSTEP_DB_AUTO_CREATE", "true"):
        return
    Base.metadata.create_all(bind=get_engine())


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, rolled back if the handler fails."""

    get_engine()
    assert _sessionmaker is not None
    db = _sessionmaker()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
