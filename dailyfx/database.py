"""SQLAlchemy database helpers and session management."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, scoped_session, sessionmaker


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


# Thread-local scoped session shared by request threads, the scheduler, and
# background ingestion workers.
SessionLocal = scoped_session(sessionmaker())

_engine: Optional[Engine] = None


def init_app(app: Any) -> Engine:
    """Configure SQLAlchemy engine and session for the Flask application."""

    global _engine

    database_uri = app.config["SQLALCHEMY_DATABASE_URI"]
    if _engine is None or _engine.url.render_as_string(hide_password=False) != database_uri:
        if _engine is not None:
            SessionLocal.remove()
            _engine.dispose()
        connect_args = {"check_same_thread": False} if database_uri.startswith("sqlite") else {}
        _engine = create_engine(database_uri, future=True, connect_args=connect_args)
        if _engine.dialect.name == "sqlite":
            _enable_sqlite_savepoints(_engine)
        SessionLocal.configure(bind=_engine, autoflush=False, expire_on_commit=False)

    @app.teardown_appcontext
    def shutdown_session(_: Optional[BaseException] = None) -> None:
        SessionLocal.remove()

    app.extensions["sqlalchemy_engine"] = _engine
    app.extensions["sqlalchemy_session_factory"] = SessionLocal
    return _engine


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite defers BEGIN until the first DML statement, which breaks
    # SAVEPOINT; emit BEGIN ourselves.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def get_engine() -> Engine:
    """Return the active SQLAlchemy engine; raise if not yet initialized."""

    if _engine is None:
        raise RuntimeError("Database engine has not been initialized. Call init_app first.")
    return _engine


def get_session() -> scoped_session:
    """Expose the configured session factory."""

    return SessionLocal

