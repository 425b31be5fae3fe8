"""Database connection and session management.

A ``Database`` owns one engine and one session factory. Each job invocation
constructs its own instance and closes it when the run ends; nothing here is
module-global.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from expiry_alerts.logging import get_logger

from .exceptions import DatabaseConnectionError

logger = get_logger(__name__, component="database")


class Database:
    """Engine plus session factory with explicit lifecycle.

    Example:
        >>> with Database("sqlite:///:memory:") as db:
        ...     with db.session() as session:
        ...         TenantRepository(session).list_active()
    """

    def __init__(self, database_url: str, create_tables: bool = True):
        """Create the engine, validate the connection and (optionally) the schema.

        Raises:
            DatabaseConnectionError: If initialization fails
        """
        if not database_url or not isinstance(database_url, str):
            raise DatabaseConnectionError("Database URL must be a non-empty string")

        self.url = database_url
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

        try:
            logger.info(
                "Initializing database",
                extra={
                    "event": "database.initializing",
                    "database_url": _redact_url(database_url),
                },
            )
            self._engine = _create_engine(database_url)
            _validate_connection(self._engine)
            self._session_factory = sessionmaker(
                bind=self._engine,
                autocommit=False,
                autoflush=True,
                expire_on_commit=False,
                future=True,
            )

            if create_tables:
                from .schema import create_schema

                create_schema(self._engine)

            logger.info(
                "Database initialized successfully",
                extra={
                    "event": "database.initialised",
                    "database_url": _redact_url(database_url),
                },
            )
        except DatabaseConnectionError:
            self.close()
            raise
        except Exception as e:
            self.close()
            error_msg = f"Failed to initialize database: {e}"
            logger.error(error_msg, exc_info=True, extra={"event": "database.init_failed"})
            raise DatabaseConnectionError(error_msg) from e

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise DatabaseConnectionError("Database is closed")
        return self._engine

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Provide a session that commits on success and rolls back on error.

        Raises:
            DatabaseConnectionError: If the database has been closed
        """
        if self._session_factory is None:
            raise DatabaseConnectionError("Database is closed; cannot open a session")

        session = self._session_factory()
        try:
            yield session
            session.commit()
            logger.debug(
                "Database session committed",
                extra={"event": "database.session.committed"},
            )
        except Exception as e:
            session.rollback()
            logger.warning(
                f"Database session rolled back due to exception: {e}",
                extra={
                    "event": "database.session.rolled_back",
                    "error_type": type(e).__name__,
                },
            )
            raise
        finally:
            session.close()

    def close(self) -> None:
        """Dispose of pooled connections. Safe to call more than once."""
        if self._engine is not None:
            self._engine.dispose()
            logger.info("Database connections closed", extra={"event": "database.closed"})
        self._engine = None
        self._session_factory = None

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"Database(url={_redact_url(self.url)!r}, {state})"


def _create_engine(database_url: str) -> Engine:
    is_sqlite = database_url.startswith("sqlite")
    in_memory = is_sqlite and (":memory:" in database_url or database_url == "sqlite://")

    if is_sqlite and database_url.startswith("sqlite:///") and not in_memory:
        db_file = Path(database_url.replace("sqlite:///", "", 1))
        if not db_file.parent.exists():
            logger.info(
                f"Creating database directory: {db_file.parent}",
                extra={"event": "database.directory_created"},
            )
            db_file.parent.mkdir(parents=True, exist_ok=True)

    kwargs = {"echo": False, "pool_pre_ping": True, "future": True}
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
    if in_memory:
        # Every session must see the same in-memory database.
        kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)

    if is_sqlite:
        _configure_sqlite(engine, wal=not in_memory)

    return engine


def _configure_sqlite(engine: Engine, wal: bool = True) -> None:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if wal:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


def _validate_connection(engine: Engine) -> None:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        logger.debug(
            "Database connection validated successfully",
            extra={"event": "database.connection_validated"},
        )
    except Exception as e:
        raise DatabaseConnectionError(f"Failed to validate database connection: {e}") from e


def _redact_url(url: str) -> str:
    """Redact the password from a database URL for logging.

    Example:
        >>> _redact_url("postgresql://user:secret@db:5432/app")
        'postgresql://user:***@db:5432/app'
    """
    if url.startswith("sqlite"):
        return url

    if "@" in url and "://" in url:
        credentials, host = url.rsplit("@", 1)
        scheme, _, userinfo = credentials.partition("://")
        username = userinfo.split(":", 1)[0]
        return f"{scheme}://{username}:***@{host}"

    return url
