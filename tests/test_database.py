"""
Unit tests for the pooled store handle.

The psycopg2 pool is mocked; these tests check transaction scope:
commit on success, rollback on error, connection always returned.
"""

import pytest
from unittest.mock import MagicMock, patch

import psycopg2
from psycopg2.extensions import ISOLATION_LEVEL_SERIALIZABLE
from psycopg2.extras import RealDictCursor

from db import database
from db.database import Database, DatabaseSettings


@pytest.fixture
def mock_conn():
    conn = MagicMock()
    conn.closed = 0
    conn.cursor_factory = None
    return conn


@pytest.fixture
def opened_db(mock_conn):
    with patch("db.database.pool.ThreadedConnectionPool") as pool_class:
        pool_instance = pool_class.return_value
        pool_instance.getconn.return_value = mock_conn
        db = Database(DatabaseSettings(database_url="postgresql://u:p@localhost/test"))
        db.open()
        yield db, pool_instance


class TestSettings:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db/waste")
        monkeypatch.setenv("DB_POOL_MAX", "9")
        monkeypatch.setenv("DB_STATEMENT_TIMEOUT_MS", "5000")

        settings = DatabaseSettings.from_env()

        assert settings.database_url == "postgresql://u:p@db/waste"
        assert settings.min_connections == 1
        assert settings.max_connections == 9
        assert settings.statement_timeout_ms == 5000
        assert settings.sslmode == "prefer"

    def test_missing_database_url(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)

        with pytest.raises(ValueError):
            DatabaseSettings.from_env()


class TestTransaction:
    def test_commit_and_release_on_success(self, opened_db, mock_conn):
        db, pool_instance = opened_db

        with db.transaction() as conn:
            assert conn is mock_conn
            assert conn.cursor_factory is RealDictCursor

        mock_conn.commit.assert_called_once()
        mock_conn.rollback.assert_not_called()
        pool_instance.putconn.assert_called_once_with(mock_conn)
        assert mock_conn.cursor_factory is None

    def test_rollback_and_release_on_error(self, opened_db, mock_conn):
        db, pool_instance = opened_db

        with pytest.raises(psycopg2.IntegrityError):
            with db.transaction():
                raise psycopg2.IntegrityError("duplicate key")

        mock_conn.rollback.assert_called_once()
        mock_conn.commit.assert_not_called()
        pool_instance.putconn.assert_called_once_with(mock_conn)

    def test_isolation_level(self, opened_db, mock_conn):
        db, _ = opened_db

        with db.transaction("serializable"):
            pass

        mock_conn.set_session.assert_called_once_with(
            isolation_level=ISOLATION_LEVEL_SERIALIZABLE, autocommit=False
        )

    def test_unknown_isolation_level(self, opened_db, mock_conn):
        db, pool_instance = opened_db

        with pytest.raises(ValueError):
            with db.transaction("READ UNCOMMITTED-ISH"):
                pass

        pool_instance.getconn.assert_not_called()

    def test_stale_connection_is_replaced(self, opened_db, mock_conn):
        db, pool_instance = opened_db
        stale = MagicMock()
        stale.closed = 1
        pool_instance.getconn.side_effect = [stale, mock_conn]

        with db.transaction() as conn:
            assert conn is mock_conn

        pool_instance.putconn.assert_any_call(stale, close=True)
        pool_instance.putconn.assert_called_with(mock_conn)

    def test_not_opened(self):
        db = Database(DatabaseSettings(database_url="postgresql://localhost/test"))

        with pytest.raises(RuntimeError):
            with db.transaction():
                pass

    def test_close(self, opened_db):
        db, pool_instance = opened_db

        db.close()

        pool_instance.closeall.assert_called_once()
        assert db.is_open is False


class TestDefaultHandle:
    def test_init_get_close(self, monkeypatch):
        monkeypatch.setattr(database, "_default_database", None)
        with patch("db.database.pool.ThreadedConnectionPool"):
            db = database.init_connection_pool(
                DatabaseSettings(database_url="postgresql://localhost/test")
            )
            assert database.get_database() is db
            assert database.init_connection_pool() is db

            database.close_connection_pool()

        with pytest.raises(RuntimeError):
            database.get_database()

    def test_health_check_failure(self):
        db = Database(DatabaseSettings(database_url="postgresql://localhost/test"))
        assert db.health_check() is False
