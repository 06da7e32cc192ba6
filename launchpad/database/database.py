"""
Central SQLAlchemy setup.

*   Reads DATABASE_URL from the environment (the Supabase Postgres in
    production, SQLite in tests).
*   Creates an Engine with pooling + disconnect handling.
*   Exposes `SessionLocal()` factory and `Base` declarative metadata.
*   Provides the `db_session()` unit of work and `init_db()`.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Any, Dict, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

# --------------------------------------------------------------------------- #
# Environment
# --------------------------------------------------------------------------- #
DATABASE_URL: str | None = os.getenv("DATABASE_URL")

if not DATABASE_URL:
    raise RuntimeError(
        "DATABASE_URL is not set – cannot start application without a database."
    )

# --------------------------------------------------------------------------- #
# Engine
# --------------------------------------------------------------------------- #
def _engine_options(url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "echo": os.getenv("SQLALCHEMY_ECHO", "false").lower() == "true",
    }
    if url.startswith("sqlite"):
        # one shared connection so in-memory databases survive across sessions
        options.update(
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        options.update(
            pool_size=10,
            max_overflow=20,
            pool_pre_ping=True,
            pool_recycle=1800,  # 30 min – keeps long-lived workers fresh.
        )
    return options


ENGINE = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

if DATABASE_URL.startswith("sqlite"):
    @event.listens_for(ENGINE, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record):
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

# --------------------------------------------------------------------------- #
# Session factory
# --------------------------------------------------------------------------- #
SessionLocal = sessionmaker(
    bind=ENGINE,
    expire_on_commit=False,  # rows are serialised after commit
    autoflush=False,
    autocommit=False,
)

# --------------------------------------------------------------------------- #
# Declarative base
# --------------------------------------------------------------------------- #
Base = declarative_base()

# --------------------------------------------------------------------------- #
# Dependency helpers
# --------------------------------------------------------------------------- #
@contextmanager
def db_session() -> Generator[Session, None, None]:
    """
    Context-manager unit of work::

        with db_session() as db:
            db.query(...)

    Commits on success, rolls back and re-raises on error.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """
    Create all tables that are imported into metadata.
    Call once at startup (or manage the Supabase schema with migrations).
    """
    import launchpad.database.models  # noqa: F401 – ensure models are imported

    Base.metadata.create_all(bind=ENGINE)
