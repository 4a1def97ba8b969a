"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory repositories over one shared store
- Domain services wired to those repositories
- A mocked mail sender recording every dispatched message
"""

from unittest.mock import Mock

import pytest

from src.adapters.repository.memory import (
    InMemoryAccountLock,
    InMemoryAccountRepository,
    InMemoryCheckRepository,
    InMemorySignatureRepository,
    InMemoryStore,
    InMemoryTokenRepository,
    InMemoryVerificationRequestRepository,
)
from src.adapters.smtp.templates import confirm_template
from src.domain.accounts import AccountService
from src.domain.checks import OneTimeCheckIssuer
from src.domain.confirmation import ConfirmationProcessor
from src.domain.identity import IdentityLinkRegistry
from src.domain.models import Account
from src.domain.tokens import TokenVault
from src.domain.workflow import VerificationWorkflow

# Lowest bcrypt work factor keeps the suite fast
FAST_HASH_ROUNDS = 4


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def locks() -> InMemoryAccountLock:
    return InMemoryAccountLock()


@pytest.fixture
def account_repository(store: InMemoryStore) -> InMemoryAccountRepository:
    return InMemoryAccountRepository(store)


@pytest.fixture
def signature_repository(store: InMemoryStore) -> InMemorySignatureRepository:
    return InMemorySignatureRepository(store)


@pytest.fixture
def request_repository(store: InMemoryStore) -> InMemoryVerificationRequestRepository:
    return InMemoryVerificationRequestRepository(store)


@pytest.fixture
def check_repository(store: InMemoryStore) -> InMemoryCheckRepository:
    return InMemoryCheckRepository(store)


@pytest.fixture
def token_repository(store: InMemoryStore) -> InMemoryTokenRepository:
    return InMemoryTokenRepository(store)


@pytest.fixture
def mail_sender() -> Mock:
    """Mail sender double; inspect ``send.call_args_list`` for messages."""
    return Mock()


@pytest.fixture
def issuer(
    request_repository: InMemoryVerificationRequestRepository,
    check_repository: InMemoryCheckRepository,
    mail_sender: Mock,
    locks: InMemoryAccountLock,
) -> OneTimeCheckIssuer:
    return OneTimeCheckIssuer(
        requests=request_repository,
        checks=check_repository,
        mail_sender=mail_sender,
        confirm_template=confirm_template,
        locks=locks,
        base_url="https://app.example.com",
        hash_rounds=FAST_HASH_ROUNDS,
    )


@pytest.fixture
def workflow(
    request_repository: InMemoryVerificationRequestRepository,
    issuer: OneTimeCheckIssuer,
    locks: InMemoryAccountLock,
) -> VerificationWorkflow:
    return VerificationWorkflow(requests=request_repository, issuer=issuer, locks=locks)


@pytest.fixture
def confirmation(
    request_repository: InMemoryVerificationRequestRepository,
    issuer: OneTimeCheckIssuer,
    locks: InMemoryAccountLock,
) -> ConfirmationProcessor:
    return ConfirmationProcessor(requests=request_repository, issuer=issuer, locks=locks)


@pytest.fixture
def registry(signature_repository: InMemorySignatureRepository) -> IdentityLinkRegistry:
    return IdentityLinkRegistry(signatures=signature_repository)


@pytest.fixture
def vault(token_repository: InMemoryTokenRepository, locks: InMemoryAccountLock) -> TokenVault:
    return TokenVault(tokens=token_repository, locks=locks)


@pytest.fixture
def account_service(
    account_repository: InMemoryAccountRepository,
    request_repository: InMemoryVerificationRequestRepository,
    locks: InMemoryAccountLock,
) -> AccountService:
    return AccountService(accounts=account_repository, requests=request_repository, locks=locks)


@pytest.fixture
def account(account_repository: InMemoryAccountRepository) -> Account:
    """Account with email a@x.com and no confirmed contacts."""
    return account_repository.create("alice", email="a@x.com")
