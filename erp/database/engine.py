import logging
import sqlite3

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool

from erp.config import Settings, get_settings


app_settings: Settings = get_settings()
logger = logging.getLogger(__name__)


def _is_sqlite_memory(url) -> bool:
    if url.database in (None, "", ":memory:"):
        return True
    return url.query.get("mode") == "memory"


def build_engine(database_url: str, *, settings: Settings | None = None) -> Engine:
    """Create an engine whose write transactions serialize per inventory row.

    PostgreSQL (and other lock-capable backends) get ``SELECT ... FOR UPDATE``
    from the services. SQLite ignores row locks, so every transaction there is
    opened with ``BEGIN IMMEDIATE`` and concurrent writers queue on the
    database lock for up to ``SQLITE_BUSY_TIMEOUT_SECONDS``.
    """
    settings = settings or app_settings
    url = make_url(database_url)
    backend = url.get_backend_name()
    is_sqlite = backend == "sqlite"
    is_memory = is_sqlite and _is_sqlite_memory(url)

    connect_args: dict[str, object] = {}
    engine_kwargs: dict[str, object] = dict(pool_pre_ping=True)

    if is_sqlite:
        connect_args = {
            "check_same_thread": False,
            "timeout": settings.SQLITE_BUSY_TIMEOUT_SECONDS,
        }
        if is_memory:
            engine_kwargs.update(poolclass=StaticPool)
    else:
        if backend == "postgresql":
            connect_args = {
                "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"
            }

    if not is_memory:
        engine_kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
        )

    engine = create_engine(database_url, connect_args=connect_args, **engine_kwargs)

    if is_sqlite:
        busy_timeout_ms = settings.SQLITE_BUSY_TIMEOUT_SECONDS * 1000

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, _connection_record):
            # pysqlite's implicit BEGIN is replaced by the "begin" hook below.
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms}")
                if not is_memory:
                    try:
                        cursor.execute("PRAGMA journal_mode=WAL")
                        cursor.execute("PRAGMA synchronous=NORMAL")
                    except sqlite3.DatabaseError:
                        logger.warning("Unable to enable WAL journal for %s", url.database)
            finally:
                cursor.close()

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    logger.debug("Database engine ready for backend %s", backend)
    return engine


engine = build_engine(app_settings.DATABASE_URL)


__all__ = ["build_engine", "engine"]
