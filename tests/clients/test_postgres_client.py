"""Tests for PostgresClient - pooled connections with a mocked pool."""

from unittest.mock import MagicMock, patch
from uuid import UUID

import pytest

from clients.postgres_client import PostgresClient

DATABASE_URL = "postgresql://test@localhost/usermgmt_test"
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")


@pytest.fixture
def pool():
    with patch("clients.postgres_client.psycopg2.pool.ThreadedConnectionPool") as pool_cls:
        pool = pool_cls.return_value
        conn = MagicMock()
        pool.getconn.return_value = conn
        yield pool
    PostgresClient.close_all_pools()


@pytest.fixture
def db(pool):
    return PostgresClient(DATABASE_URL)


def cursor_of(pool) -> MagicMock:
    conn = pool.getconn.return_value
    return conn.cursor.return_value.__enter__.return_value


class TestPool:

    def test_pool_shared_per_url(self, pool):
        first = PostgresClient(DATABASE_URL)
        second = PostgresClient(DATABASE_URL)
        assert first._connection_pools[DATABASE_URL] is second._connection_pools[DATABASE_URL]

    def test_connection_returned_to_pool(self, db, pool):
        with db.get_connection():
            pass
        pool.putconn.assert_called_once_with(pool.getconn.return_value)

    def test_rollback_on_error(self, db, pool):
        conn = pool.getconn.return_value
        with pytest.raises(RuntimeError):
            with db.get_connection():
                raise RuntimeError("boom")
        conn.rollback.assert_called_once()
        pool.putconn.assert_called_once_with(conn)

    def test_close(self, db, pool):
        db.close()
        pool.closeall.assert_called_once()
        assert DATABASE_URL not in PostgresClient._connection_pools


class TestExecute:

    def test_execute_returns_dicts(self, db, pool):
        cursor = cursor_of(pool)
        cursor.description = [("id",)]
        cursor.fetchall.return_value = [{"id": 1}, {"id": 2}]

        rows = db.execute("SELECT id FROM users")

        assert rows == [{"id": 1}, {"id": 2}]
        pool.getconn.return_value.commit.assert_called_once()

    def test_execute_single_none_when_empty(self, db, pool):
        cursor = cursor_of(pool)
        cursor.description = [("id",)]
        cursor.fetchall.return_value = []

        assert db.execute_single("SELECT id FROM users WHERE id = %s", (TEST_USER_ID,)) is None

    def test_uuid_params_converted(self, db, pool):
        cursor = cursor_of(pool)
        cursor.fetchall.return_value = []

        db.execute_returning(
            "UPDATE users SET refresh_token = %s WHERE id = %s RETURNING id",
            (None, TEST_USER_ID),
        )

        cursor.execute.assert_called_once_with(
            "UPDATE users SET refresh_token = %s WHERE id = %s RETURNING id",
            (None, str(TEST_USER_ID)),
        )
