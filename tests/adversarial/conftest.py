"""
Shared fixtures for adversarial tests.

Provides the database pool and a thread-safe identity provider for the
concurrent registration tests.
"""

from collections.abc import Generator

import pytest
from psycopg_pool import ConnectionPool

from tests.database import clean_tables, open_test_pool
from tests.fakes import LockedIdentityProvider


@pytest.fixture(scope="module")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool for adversarial tests."""
    pool = open_test_pool()
    yield pool
    pool.close()


@pytest.fixture(autouse=True)
def clean_database(pool: ConnectionPool) -> Generator[None, None, None]:
    """Clean users and companies before each test."""
    clean_tables(pool)
    yield


@pytest.fixture
def locked_identity_provider() -> LockedIdentityProvider:
    return LockedIdentityProvider()
