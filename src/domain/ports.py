"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.

Each repository covers one entity type and offers the record-store
primitives the domain needs: find one, find many (a lazy, finite
iterator), create, save and remove. Returned relations (e.g.
``Signature.account``) are populated by the adapter where documented.
"""

from collections.abc import Iterable, Iterator
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol

from .models import (
    Account,
    CheckPurpose,
    LevelDetails,
    Message,
    OneTimeCheck,
    RenderedMail,
    Signature,
    Token,
    VerificationLevel,
    VerificationRequest,
)


class AccountRepository(Protocol):
    """Port interface for account persistence."""

    def get(self, account_id: str) -> Account | None:
        """Return the account with the given id, or None."""
        ...

    def save(self, account: Account) -> None:
        """Persist contact fields and notification preferences."""
        ...


class SignatureRepository(Protocol):
    """Port interface for signature persistence."""

    def find_one(self, type_: str, value: str) -> Signature | None:
        """Exact (type, value) lookup with the account populated."""
        ...

    def find(self, type_: str, values: Iterable[str]) -> Iterator[Signature]:
        """Batch lookup in a single query, accounts populated. Misses are skipped."""
        ...

    def create_with_account(self, type_: str, value: str, account_name: str) -> Signature:
        """
        Atomically create an account and a signature bound to it.

        If a signature for (type, value) appeared concurrently, the existing
        binding is returned and no account is created.

        Returns:
            The binding re-read with the account populated
        """
        ...


class VerificationRequestRepository(Protocol):
    """Port interface for verification request persistence."""

    def find_active(self, account_id: str, level: VerificationLevel) -> VerificationRequest | None:
        """Return the request in CREATED status for (account, level), or None."""
        ...

    def find_for_account(self, account_id: str) -> Iterator[VerificationRequest]:
        """Every request owned by the account, any status."""
        ...

    def create(
        self, account_id: str, level: VerificationLevel, payload: LevelDetails
    ) -> VerificationRequest:
        """Create a request in CREATED status."""
        ...

    def save(self, request: VerificationRequest) -> None:
        """Persist the request payload."""
        ...


class CheckRepository(Protocol):
    """Port interface for one-time check persistence."""

    def remove_all(self, account_id: str, purpose: CheckPurpose) -> int:
        """Delete every check for (account, purpose). Returns the count removed."""
        ...

    def create(
        self, account_id: str, purpose: CheckPurpose, payload: str, code_hash: str
    ) -> OneTimeCheck:
        """Store a new check."""
        ...

    def find(self, account_id: str, purpose: CheckPurpose, payload: str) -> Iterator[OneTimeCheck]:
        """Checks for (account, purpose) carrying the given payload."""
        ...

    def remove(self, check: OneTimeCheck) -> bool:
        """Delete one check. Returns False if it was already gone."""
        ...


class TokenRepository(Protocol):
    """Port interface for token persistence."""

    def find_by_value(self, value: str) -> Token | None:
        """Exact token lookup with the account populated."""
        ...

    def find_by_purpose(self, account_id: str, purpose: str) -> Token | None:
        """Token for (account, purpose), or None."""
        ...

    def get(self, token_id: str) -> Token | None:
        """Re-read by id with the account populated."""
        ...

    def create(
        self, account_id: str, purpose: str, value: str, expires_at: datetime
    ) -> Token:
        """Store a new token."""
        ...

    def save(self, token: Token) -> None:
        """Persist the token, advancing its freshness timestamp."""
        ...

    def remove(self, token: Token) -> None:
        """Delete the token."""
        ...


class AccountLock(Protocol):
    """
    Per-account mutual exclusion.

    Serializes check-then-act sequences (find, then create or update) for
    one account. Holding is re-entrant within a thread.
    """

    def hold(self, account_id: str) -> AbstractContextManager[None]:
        """Context manager holding the account's lock."""
        ...


class MailSender(Protocol):
    """Port interface for email delivery."""

    def send(self, message: Message) -> None:
        """
        Deliver the message.

        Raises:
            DispatchFailure: If delivery failed
        """
        ...


class ConfirmTemplate(Protocol):
    """Renders the email-confirmation message."""

    def __call__(self, base_url: str, username: str, check: str) -> RenderedMail: ...
