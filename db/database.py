"""
Database connection management with connection pooling.

Provides a thread-safe PostgreSQL store handle built on psycopg2's
ThreadedConnectionPool. Each unit of work runs inside
``Database.transaction()``, which commits on success, rolls back on any
error and always returns the connection to the pool.
"""

import os
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

import psycopg2
from psycopg2 import pool
from psycopg2.extensions import (
    ISOLATION_LEVEL_READ_COMMITTED,
    ISOLATION_LEVEL_REPEATABLE_READ,
    ISOLATION_LEVEL_SERIALIZABLE,
)
from psycopg2.extras import RealDictCursor

logger = logging.getLogger(__name__)

ISOLATION_LEVELS = {
    "READ COMMITTED": ISOLATION_LEVEL_READ_COMMITTED,
    "REPEATABLE READ": ISOLATION_LEVEL_REPEATABLE_READ,
    "SERIALIZABLE": ISOLATION_LEVEL_SERIALIZABLE,
}


@dataclass
class DatabaseSettings:
    """Connection pool settings, usually read from the environment."""

    database_url: str
    min_connections: int = 1
    max_connections: int = 5
    statement_timeout_ms: int = 60000
    sslmode: str = "prefer"

    @classmethod
    def from_env(cls) -> "DatabaseSettings":
        """
        Build settings from environment variables.

        Raises:
            ValueError: If DATABASE_URL is not set
        """
        db_url = os.getenv("DATABASE_URL")
        if not db_url:
            raise ValueError(
                "DATABASE_URL not found. Set it in .env file or pass as parameter."
            )
        return cls(
            database_url=db_url,
            min_connections=int(os.getenv("DB_POOL_MIN", "1")),
            max_connections=int(os.getenv("DB_POOL_MAX", "5")),
            statement_timeout_ms=int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "60000")),
            sslmode=os.getenv("DB_SSLMODE", "prefer"),
        )


class Database:
    """
    Store handle wrapping a psycopg2 connection pool.

    Passed explicitly to every engine call so that the transaction scope is
    visible at the call site.

    Usage:
        db = Database(DatabaseSettings.from_env())
        with db.transaction() as conn:
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
    """

    def __init__(self, settings: DatabaseSettings):
        self.settings = settings
        self._pool: Optional[pool.ThreadedConnectionPool] = None

    def open(self) -> None:
        """
        Create the underlying connection pool.

        Raises:
            psycopg2.Error: If connection pool cannot be created
        """
        if self._pool is not None:
            logger.warning("Connection pool already initialized")
            return

        try:
            self._pool = pool.ThreadedConnectionPool(
                self.settings.min_connections,
                self.settings.max_connections,
                self.settings.database_url,
                sslmode=self.settings.sslmode,
                connect_timeout=10,
                keepalives=1,
                keepalives_idle=30,
                keepalives_interval=10,
                keepalives_count=5,
                options=f"-c statement_timeout={self.settings.statement_timeout_ms}",
            )
            logger.info(
                f"Database connection pool initialized: "
                f"min={self.settings.min_connections}, max={self.settings.max_connections}"
            )
        except psycopg2.Error as e:
            logger.error(f"Failed to create connection pool: {e}")
            raise

    def close(self) -> None:
        """Close all connections in the pool."""
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None
            logger.info("Database connection pool closed")

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    @contextmanager
    def transaction(self, isolation_level: str = "READ COMMITTED"):
        """
        Run a block inside a single database transaction (context manager).

        Rows are returned as dictionaries (RealDictCursor).

        Args:
            isolation_level: One of READ COMMITTED, REPEATABLE READ, SERIALIZABLE

        Yields:
            psycopg2.connection: Connection with an open transaction

        Raises:
            RuntimeError: If the pool has not been opened
            ValueError: If the isolation level is unknown
            psycopg2.Error: If a database operation fails (after rollback)
        """
        if self._pool is None:
            raise RuntimeError(
                "Connection pool not initialized. Call open() first."
            )
        level = ISOLATION_LEVELS.get(isolation_level.upper())
        if level is None:
            raise ValueError(f"Unknown isolation level: {isolation_level}")

        conn = self._pool.getconn()
        original_factory = conn.cursor_factory
        try:
            # Stale connections are replaced before the transaction starts
            if conn.closed:
                logger.warning("Stale connection detected, getting fresh connection")
                self._pool.putconn(conn, close=True)
                conn = self._pool.getconn()
                original_factory = conn.cursor_factory

            conn.set_session(isolation_level=level, autocommit=False)
            conn.cursor_factory = RealDictCursor

            yield conn

            conn.commit()

        except Exception as e:
            conn.rollback()
            logger.error(f"Database transaction rolled back: {e}")
            raise

        finally:
            conn.cursor_factory = original_factory
            self._pool.putconn(conn)

    def health_check(self) -> bool:
        """
        Check if database connection is healthy.

        Returns:
            True if database is accessible, False otherwise
        """
        try:
            with self.transaction() as conn:
                with conn.cursor() as cursor:
                    cursor.execute("SELECT 1 AS ok")
                    return cursor.fetchone() is not None
        except (psycopg2.Error, RuntimeError) as e:
            logger.error(f"Database health check failed: {e}")
            return False


# Application-wide default handle, wired by entry points (CLI, app startup)
_default_database: Optional[Database] = None


def init_connection_pool(settings: Optional[DatabaseSettings] = None) -> Database:
    """
    Initialize the application-wide database handle.

    Args:
        settings: Pool settings (defaults to DatabaseSettings.from_env())

    Returns:
        The opened Database handle
    """
    global _default_database

    if _default_database is not None:
        logger.warning("Connection pool already initialized")
        return _default_database

    database = Database(settings or DatabaseSettings.from_env())
    database.open()
    _default_database = database
    return database


def get_database() -> Database:
    """Return the application-wide handle created by init_connection_pool()."""
    if _default_database is None:
        raise RuntimeError(
            "Connection pool not initialized. Call init_connection_pool() first."
        )
    return _default_database


def close_connection_pool() -> None:
    """
    Close the application-wide handle.

    Should be called when application shuts down.
    """
    global _default_database

    if _default_database is not None:
        _default_database.close()
        _default_database = None
