"""Repository adapters - Database and in-memory implementations."""

from .memory import (
    InMemoryAccountLock,
    InMemoryAccountRepository,
    InMemoryCheckRepository,
    InMemorySignatureRepository,
    InMemoryStore,
    InMemoryTokenRepository,
    InMemoryVerificationRequestRepository,
)
from .postgres import (
    PostgresAccountLock,
    PostgresAccountRepository,
    PostgresCheckRepository,
    PostgresSignatureRepository,
    PostgresTokenRepository,
    PostgresVerificationRequestRepository,
    run_migrations,
)

__all__ = [
    "InMemoryAccountLock",
    "InMemoryAccountRepository",
    "InMemoryCheckRepository",
    "InMemorySignatureRepository",
    "InMemoryStore",
    "InMemoryTokenRepository",
    "InMemoryVerificationRequestRepository",
    "PostgresAccountLock",
    "PostgresAccountRepository",
    "PostgresCheckRepository",
    "PostgresSignatureRepository",
    "PostgresTokenRepository",
    "PostgresVerificationRequestRepository",
    "run_migrations",
]
