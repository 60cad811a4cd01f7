"""Database helpers for the booking engine.

On SQLite every writing transaction starts with ``BEGIN IMMEDIATE`` so hold
attempts serialize on the database lock. Sessions opened through
``read_scope`` start with a plain ``BEGIN`` and never take that lock, so
searches and availability queries do not queue behind writers.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Iterator, Tuple

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from . import config
from .models import Base

_SQLITE_BUSY_TIMEOUT = 30
READ_ONLY_OPTION = "airbook_read_only"


def _serialize_sqlite_writers(engine: Engine) -> None:
    # pysqlite defers BEGIN until the first DML statement; take the write lock
    # up front so a hold's conflict check and insert see a stable table.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        if conn.get_execution_options().get(READ_ONLY_OPTION):
            conn.exec_driver_sql("BEGIN")
        else:
            conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_session_factory(
    db_url: str = config.DATABASE_URL,
    *,
    echo: bool = config.SQL_ECHO,
    connect_args: Dict[str, object] | None = None,
) -> Tuple[Engine, sessionmaker[Session]]:
    """Return an engine/session factory pair configured for SQLite by default."""

    is_sqlite = db_url.startswith("sqlite")
    if is_sqlite:
        final_connect_args = {"check_same_thread": False, "timeout": _SQLITE_BUSY_TIMEOUT}
        if connect_args:
            final_connect_args.update(connect_args)
    else:
        final_connect_args = connect_args or {}

    if db_url.endswith(":memory:"):
        engine = create_engine(
            db_url,
            echo=echo,
            future=True,
            connect_args=final_connect_args,
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            db_url,
            echo=echo,
            future=True,
            connect_args=final_connect_args,
        )
    if is_sqlite:
        _serialize_sqlite_writers(engine)
    session_factory = sessionmaker(bind=engine, expire_on_commit=False, future=True)
    return engine, session_factory


def init_db(db_url: str = config.DATABASE_URL, *, echo: bool = config.SQL_ECHO) -> sessionmaker[Session]:
    """Create all tables and return a session factory."""

    engine, session_factory = create_session_factory(db_url, echo=echo)
    Base.metadata.create_all(engine)
    return session_factory


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""

    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def read_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Session for queries only; whatever it changes is rolled back."""

    session = session_factory()
    try:
        session.connection(execution_options={READ_ONLY_OPTION: True})
        yield session
    finally:
        session.rollback()
        session.close()
