"""
Shared fixtures for integration tests.

Provides a PostgreSQL connection pool with migrations applied. Tests
are skipped when the configured database is unreachable.
"""

from collections.abc import Generator

import psycopg
import pytest
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import run_migrations
from src.config.settings import get_settings


@pytest.fixture(scope="module")
def database_url() -> str:
    return get_settings().database_url


@pytest.fixture(scope="module")
def pool(database_url: str) -> Generator[ConnectionPool, None, None]:
    """Create connection pool for integration tests."""
    try:
        with psycopg.connect(database_url, connect_timeout=2):
            pass
    except psycopg.OperationalError as e:
        pytest.skip(f"PostgreSQL unavailable: {e}")

    pool = ConnectionPool(
        conninfo=database_url,
        min_size=1,
        max_size=10,
        open=True,
    )
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture(autouse=True)
def clean_database(request: pytest.FixtureRequest) -> Generator[None, None, None]:
    """Clean the documents table before each test that uses the database."""
    if "pool" in request.fixturenames:
        pool: ConnectionPool = request.getfixturevalue("pool")
        with pool.connection() as conn:
            conn.execute("DELETE FROM documents")
            conn.commit()
    yield
