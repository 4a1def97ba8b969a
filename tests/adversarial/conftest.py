"""
Shared fixtures for adversarial tests.

Every test runs against both storage backends. The PostgreSQL variant is
skipped when the configured database is unreachable.
"""

from collections.abc import Callable, Generator
from dataclasses import dataclass
from unittest.mock import Mock

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from src.adapters.repository.memory import InMemoryAccountRepository, InMemoryStore
from src.adapters.repository.postgres import PostgresAccountRepository, run_migrations
from src.api.dependencies import Services, build_services
from src.config.settings import Settings, get_settings
from src.domain.models import Account

# Module-level marker for all adversarial tests
pytestmark = pytest.mark.adversarial

# Fewer connections than attackers; lock waiters must not starve the holder
POOL_MAX_SIZE = 4

_TABLES = ["one_time_checks", "tokens", "verification_requests", "signatures", "accounts"]

_STORE_TABLES = {
    "accounts": "accounts",
    "signatures": "signatures",
    "verification_requests": "requests",
    "one_time_checks": "checks",
    "tokens": "tokens",
}


@dataclass
class Backend:
    """Services over one storage backend plus raw row counting."""

    services: Services
    mail_sender: Mock
    create_account: Callable[..., Account]
    count: Callable[[str], int]


@pytest.fixture(scope="module")
def pool() -> Generator[ConnectionPool, None, None]:
    """Create connection pool for adversarial tests."""
    settings = get_settings()
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=1,
        max_size=POOL_MAX_SIZE,
        open=True,
    )
    try:
        pool.wait(timeout=5)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")
    run_migrations(pool)
    yield pool
    pool.close()


def _memory_backend(settings: Settings) -> Backend:
    store = InMemoryStore()
    mail_sender = Mock()

    def count(table: str) -> int:
        return len(getattr(store, _STORE_TABLES[table]))

    return Backend(
        services=build_services(settings, store=store, mail_sender=mail_sender),
        mail_sender=mail_sender,
        create_account=InMemoryAccountRepository(store).create,
        count=count,
    )


def _postgres_backend(settings: Settings, pool: ConnectionPool) -> Backend:
    with pool.connection() as conn:
        for table in _TABLES:
            conn.execute(f"DELETE FROM {table}")
        conn.commit()

    mail_sender = Mock()

    def count(table: str) -> int:
        with pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(f"SELECT COUNT(*) FROM {table}")
            return cursor.fetchone()[0]

    return Backend(
        services=build_services(settings, pool=pool, mail_sender=mail_sender),
        mail_sender=mail_sender,
        create_account=PostgresAccountRepository(pool).create,
        count=count,
    )


@pytest.fixture(params=["memory", "postgres"])
def backend(request: pytest.FixtureRequest) -> Backend:
    settings = Settings(storage_backend=request.param, check_hash_rounds=4)
    if request.param == "postgres":
        return _postgres_backend(settings, request.getfixturevalue("pool"))
    return _memory_backend(settings)
