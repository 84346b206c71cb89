"""Database handle and bootstrap.

Database wraps one engine + session factory. It is created lazily, shared by
every component through the service container, and can be replaced in tests
via reset_database().
"""

import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from apps.sangam.config import load_settings
from apps.sangam.models import Base
from apps.sangam.models.chat_embedding import ChatEmbedding
from apps.sangam.models.chat_message import ChatMessage


class Database:
    """Engine + session factory for one DATABASE_URL. Engine is created on first use."""

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self.url = url
        self._echo = echo
        self._engine: Engine | None = None
        self._sessionmaker: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_engine(self.url, pool_pre_ping=True, echo=self._echo)
            self._sessionmaker = sessionmaker(
                autocommit=False, autoflush=False, bind=self._engine, expire_on_commit=False
            )
        return self._engine

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Provide a transactional scope for DB operations. Always filter by tenant_id in queries."""
        if self._sessionmaker is None:
            _ = self.engine
        session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self) -> None:
        """Round-trip SELECT 1. Raises on connection failure."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._sessionmaker = None


_database: Database | None = None


def get_database() -> Database:
    """Return the process-wide Database, creating it from settings on first call."""
    global _database
    if _database is None:
        settings = load_settings()
        _database = Database(settings.database_url, echo=settings.sql_echo)
    return _database


def reset_database(database: Database | None = None) -> Database | None:
    """Dispose the current Database and install `database` (or None to re-create lazily)."""
    global _database
    if _database is not None and _database is not database:
        _database.dispose()
    _database = database
    return _database


def ensure_tables(bind=None) -> None:
    """Create chat tables if they do not exist. Idempotent (checkfirst=True).

    Alembic is the schema authority in dev/prod (it also installs the match_messages
    function). This path only runs for TEST_SCHEMA_STRATEGY=ensure_tables in tests.
    """
    in_test = os.environ.get("ENV") == "test" or os.environ.get("PYTEST_RUNNING") == "1"
    strategy = (os.environ.get("TEST_SCHEMA_STRATEGY") or "alembic").strip().lower()
    if not (in_test and strategy == "ensure_tables"):
        return
    _create_all_safe(bind if bind is not None else get_database().engine)


def _create_all_safe(bind) -> None:
    """Run create_all with checkfirst=True; ignore Postgres 'already exists' errors for idempotency.
    Uses AUTOCOMMIT so partial progress persists when a duplicate index is hit."""
    import sqlalchemy.exc

    conn = bind.connect().execution_options(isolation_level="AUTOCOMMIT") if isinstance(bind, Engine) else bind
    try:
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        Base.metadata.create_all(
            bind=conn,
            tables=[ChatMessage.__table__, ChatEmbedding.__table__],
            checkfirst=True,
        )
    except sqlalchemy.exc.ProgrammingError as e:
        if "already exists" not in str(e).lower():
            raise
    finally:
        if isinstance(bind, Engine):
            conn.close()
