"""
Shared fixtures for PostgreSQL-backed tests.

Tests using ``pool`` are skipped when the configured database is not
reachable (e.g. outside docker-compose).
"""

from collections.abc import Generator

import psycopg
import pytest
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import run_migrations
from src.config.settings import get_settings


@pytest.fixture(scope="session")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool and schema, or skip without a database."""
    settings = get_settings()
    try:
        with psycopg.connect(settings.database_url, connect_timeout=2):
            pass
    except psycopg.OperationalError as e:
        pytest.skip(f"PostgreSQL not reachable: {e}")

    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=10, open=True)
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def clean_database(pool: ConnectionPool) -> Generator[ConnectionPool, None, None]:
    """Empty every table before each test."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM transactions")
        conn.execute("DELETE FROM registrations")
        conn.execute("DELETE FROM verification_records")
        conn.commit()
    yield pool
