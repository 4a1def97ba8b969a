"""
In-memory repository adapters - Implement the domain repository protocols.

Used for local development (``STORAGE_BACKEND=memory``) and tests. Records
are deep-copied on the way in and out so that, as with a real database,
an entity mutated by a caller changes nothing until it is saved.
"""

import threading
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from copy import deepcopy
from datetime import datetime, timezone
from typing import Any

from src.domain.models import (
    Account,
    CheckPurpose,
    LevelDetails,
    OneTimeCheck,
    RequestStatus,
    Signature,
    Token,
    VerificationLevel,
    VerificationRequest,
)


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryStore:
    """Shared tables for the in-memory repositories."""

    def __init__(self) -> None:
        self.mutex = threading.Lock()
        self.accounts: dict[str, Account] = {}
        self.signatures: dict[str, Signature] = {}
        self.requests: dict[str, VerificationRequest] = {}
        self.checks: dict[str, OneTimeCheck] = {}
        self.tokens: dict[str, Token] = {}

    def populate_account(self, account_id: str) -> Account | None:
        account = self.accounts.get(account_id)
        return deepcopy(account) if account is not None else None


class InMemoryAccountRepository:
    """Implements AccountRepository protocol."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def create(
        self,
        name: str,
        email: str | None = None,
        phone: str | None = None,
        confirmed_email: str | None = None,
        confirmed_phone: str | None = None,
        notifications: dict[str, Any] | None = None,
    ) -> Account:
        account = Account(
            id=_new_id(),
            name=name,
            email=email,
            phone=phone,
            confirmed_email=confirmed_email,
            confirmed_phone=confirmed_phone,
            notifications=notifications or {},
        )
        with self._store.mutex:
            self._store.accounts[account.id] = deepcopy(account)
        return account

    def get(self, account_id: str) -> Account | None:
        with self._store.mutex:
            return self._store.populate_account(account_id)

    def save(self, account: Account) -> None:
        with self._store.mutex:
            self._store.accounts[account.id] = deepcopy(account)


class InMemorySignatureRepository:
    """Implements SignatureRepository protocol."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def find_one(self, type_: str, value: str) -> Signature | None:
        with self._store.mutex:
            return self._find_one_locked(type_, value)

    def find(self, type_: str, values: Iterable[str]) -> Iterator[Signature]:
        wanted = set(values)
        with self._store.mutex:
            matches = [
                self._populated(signature)
                for signature in self._store.signatures.values()
                if signature.type == type_ and signature.value in wanted
            ]
        return iter(matches)

    def create_with_account(self, type_: str, value: str, account_name: str) -> Signature:
        with self._store.mutex:
            existing = self._find_one_locked(type_, value)
            if existing is not None:
                return existing

            account = Account(id=_new_id(), name=account_name)
            signature = Signature(id=_new_id(), account_id=account.id, type=type_, value=value)
            self._store.accounts[account.id] = account
            self._store.signatures[signature.id] = signature
            return self._populated(signature)

    def _find_one_locked(self, type_: str, value: str) -> Signature | None:
        for signature in self._store.signatures.values():
            if signature.type == type_ and signature.value == value:
                return self._populated(signature)
        return None

    def _populated(self, signature: Signature) -> Signature:
        result = deepcopy(signature)
        result.account = self._store.populate_account(signature.account_id)
        return result


class InMemoryVerificationRequestRepository:
    """Implements VerificationRequestRepository protocol."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def find_active(self, account_id: str, level: VerificationLevel) -> VerificationRequest | None:
        with self._store.mutex:
            for request in self._store.requests.values():
                if (
                    request.account_id == account_id
                    and request.level == level
                    and request.status == RequestStatus.CREATED
                ):
                    return deepcopy(request)
        return None

    def find_for_account(self, account_id: str) -> Iterator[VerificationRequest]:
        with self._store.mutex:
            matches = [
                deepcopy(request)
                for request in self._store.requests.values()
                if request.account_id == account_id
            ]
        return iter(matches)

    def create(
        self, account_id: str, level: VerificationLevel, payload: LevelDetails
    ) -> VerificationRequest:
        request = VerificationRequest(
            id=_new_id(), account_id=account_id, level=level, payload=deepcopy(payload)
        )
        with self._store.mutex:
            self._store.requests[request.id] = deepcopy(request)
        return request

    def save(self, request: VerificationRequest) -> None:
        with self._store.mutex:
            self._store.requests[request.id] = deepcopy(request)


class InMemoryCheckRepository:
    """Implements CheckRepository protocol."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def remove_all(self, account_id: str, purpose: CheckPurpose) -> int:
        with self._store.mutex:
            doomed = [
                check_id
                for check_id, check in self._store.checks.items()
                if check.account_id == account_id and check.purpose == purpose
            ]
            for check_id in doomed:
                del self._store.checks[check_id]
        return len(doomed)

    def create(
        self, account_id: str, purpose: CheckPurpose, payload: str, code_hash: str
    ) -> OneTimeCheck:
        check = OneTimeCheck(
            id=_new_id(),
            account_id=account_id,
            purpose=purpose,
            payload=payload,
            code_hash=code_hash,
            created_at=datetime.now(timezone.utc),
        )
        with self._store.mutex:
            self._store.checks[check.id] = deepcopy(check)
        return check

    def find(self, account_id: str, purpose: CheckPurpose, payload: str) -> Iterator[OneTimeCheck]:
        with self._store.mutex:
            matches = [
                deepcopy(check)
                for check in self._store.checks.values()
                if check.account_id == account_id
                and check.purpose == purpose
                and check.payload == payload
            ]
        return iter(matches)

    def remove(self, check: OneTimeCheck) -> bool:
        with self._store.mutex:
            return self._store.checks.pop(check.id, None) is not None


class InMemoryTokenRepository:
    """Implements TokenRepository protocol."""

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    def find_by_value(self, value: str) -> Token | None:
        with self._store.mutex:
            for token in self._store.tokens.values():
                if token.value == value:
                    return self._populated(token)
        return None

    def find_by_purpose(self, account_id: str, purpose: str) -> Token | None:
        with self._store.mutex:
            for token in self._store.tokens.values():
                if token.account_id == account_id and token.purpose == purpose:
                    return self._populated(token)
        return None

    def get(self, token_id: str) -> Token | None:
        with self._store.mutex:
            token = self._store.tokens.get(token_id)
            return self._populated(token) if token is not None else None

    def create(self, account_id: str, purpose: str, value: str, expires_at: datetime) -> Token:
        token = Token(
            id=_new_id(),
            account_id=account_id,
            purpose=purpose,
            value=value,
            created_at=datetime.now(timezone.utc),
            expires_at=expires_at,
        )
        with self._store.mutex:
            self._store.tokens[token.id] = deepcopy(token)
        return token

    def save(self, token: Token) -> None:
        stored = deepcopy(token)
        stored.account = None
        with self._store.mutex:
            self._store.tokens[token.id] = stored

    def remove(self, token: Token) -> None:
        with self._store.mutex:
            self._store.tokens.pop(token.id, None)

    def _populated(self, token: Token) -> Token:
        result = deepcopy(token)
        result.account = self._store.populate_account(token.account_id)
        return result


class InMemoryAccountLock:
    """
    Implements AccountLock protocol with one re-entrant lock per account.

    Only serializes callers within this process.
    """

    def __init__(self) -> None:
        self._mutex = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    @contextmanager
    def hold(self, account_id: str) -> Iterator[None]:
        with self._mutex:
            lock = self._locks.setdefault(account_id, threading.RLock())
        with lock:
            yield
