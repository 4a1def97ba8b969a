"""
FastAPI dependencies - Dependency injection factories.

This module wires the domain services to their infrastructure adapters
and provides Depends() factories for injecting them into routes.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from psycopg_pool import ConnectionPool

from src.adapters.repository.memory import (
    InMemoryAccountLock,
    InMemoryAccountRepository,
    InMemoryCheckRepository,
    InMemorySignatureRepository,
    InMemoryStore,
    InMemoryTokenRepository,
    InMemoryVerificationRequestRepository,
)
from src.adapters.repository.postgres import (
    PostgresAccountLock,
    PostgresAccountRepository,
    PostgresCheckRepository,
    PostgresSignatureRepository,
    PostgresTokenRepository,
    PostgresVerificationRequestRepository,
)
from src.adapters.smtp.console import ConsoleMailSender, ConsolePhoneCodeSender
from src.adapters.smtp.sender import SmtpMailSender
from src.adapters.smtp.templates import confirm_template
from src.config.settings import Settings
from src.domain.accounts import AccountService
from src.domain.checks import OneTimeCheckIssuer
from src.domain.confirmation import ConfirmationProcessor
from src.domain.exceptions import NotFound
from src.domain.identity import IdentityLinkRegistry
from src.domain.models import Account, Token
from src.domain.ports import MailSender
from src.domain.tokens import TokenVault
from src.domain.workflow import VerificationWorkflow

LOGIN_PURPOSE = "login"

# Module-level singleton - ConsolePhoneCodeSender is stateless
_phone_code_sender = ConsolePhoneCodeSender()


@dataclass
class Services:
    """Domain services sharing one set of adapters."""

    registry: IdentityLinkRegistry
    workflow: VerificationWorkflow
    issuer: OneTimeCheckIssuer
    confirmation: ConfirmationProcessor
    tokens: TokenVault
    accounts: AccountService


def build_mail_sender(settings: Settings) -> MailSender:
    """Select the mail adapter configured by MAIL_BACKEND."""
    if settings.mail_backend == "smtp":
        return SmtpMailSender(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.mail_from,
            user=settings.smtp_user,
            password=settings.smtp_password,
            timeout=settings.smtp_timeout,
        )
    return ConsoleMailSender()


def build_services(
    settings: Settings,
    pool: ConnectionPool | None = None,
    store: InMemoryStore | None = None,
    mail_sender: MailSender | None = None,
) -> Services:
    """
    Create the domain services over PostgreSQL (when a pool is given) or memory.

    Args:
        settings: Application settings
        pool: psycopg3 pool for the PostgreSQL adapters
        store: Store for the in-memory adapters, created if omitted
        mail_sender: Overrides the configured mail adapter
    """
    if pool is not None:
        accounts = PostgresAccountRepository(pool)
        signatures = PostgresSignatureRepository(pool)
        requests = PostgresVerificationRequestRepository(pool)
        checks = PostgresCheckRepository(pool)
        tokens = PostgresTokenRepository(pool)
        locks = PostgresAccountLock(pool, wait_timeout=settings.lock_wait_timeout)
    else:
        store = store or InMemoryStore()
        accounts = InMemoryAccountRepository(store)
        signatures = InMemorySignatureRepository(store)
        requests = InMemoryVerificationRequestRepository(store)
        checks = InMemoryCheckRepository(store)
        tokens = InMemoryTokenRepository(store)
        locks = InMemoryAccountLock()

    issuer = OneTimeCheckIssuer(
        requests=requests,
        checks=checks,
        mail_sender=mail_sender or build_mail_sender(settings),
        confirm_template=confirm_template,
        locks=locks,
        base_url=settings.mail_base_url,
        code_length=settings.check_code_length,
        hash_rounds=settings.check_hash_rounds,
    )
    return Services(
        registry=IdentityLinkRegistry(signatures=signatures),
        workflow=VerificationWorkflow(requests=requests, issuer=issuer, locks=locks),
        issuer=issuer,
        confirmation=ConfirmationProcessor(requests=requests, issuer=issuer, locks=locks),
        tokens=TokenVault(
            tokens=tokens,
            locks=locks,
            ttl=timedelta(seconds=settings.token_ttl_seconds),
            token_bytes=settings.token_bytes,
        ),
        accounts=AccountService(accounts=accounts, requests=requests, locks=locks),
    )


def get_services(request: Request) -> Services:
    """
    Get domain services from app state.

    The services are created during app lifespan startup and stored in app.state.
    """
    return request.app.state.services


def get_phone_code_sender() -> ConsolePhoneCodeSender:
    """Get console phone code sender (singleton)."""
    return _phone_code_sender


# Bearer token security scheme for OpenAPI documentation
http_bearer = HTTPBearer()


def get_current_token(
    credentials: HTTPAuthorizationCredentials = Depends(http_bearer),
    services: Services = Depends(get_services),
) -> Token:
    """
    Resolve the bearer token to a live login token.

    Unknown, expired and non-login tokens all produce the same 401.
    """
    try:
        token = services.tokens.find(credentials.credentials)
    except NotFound:
        token = None

    now = datetime.now(timezone.utc)
    if (
        token is None
        or token.purpose != LOGIN_PURPOSE
        or token.account is None
        or (token.expires_at is not None and token.expires_at <= now)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


def get_current_account(token: Token = Depends(get_current_token)) -> Account:
    """The account the bearer token belongs to."""
    return token.account
