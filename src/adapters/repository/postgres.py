"""
PostgreSQL repository adapters - Implement the domain repository protocols.

This module provides the PostgreSQL implementation of the domain's
repository ports using psycopg3 with raw SQL.

Invariant Enforcement:
---------------------
The "at most one" invariants are backed by the schema as well as by the
per-account advisory lock:

1. **signatures_type_value_key**: one signature per (type, value).
   create_with_account inserts the account and the signature in a single
   transaction with ON CONFLICT DO NOTHING and rolls back the account when
   another caller won.

2. **verification_requests_one_active**: partial unique index on
   (account_id, level) WHERE status = 'created'.

3. **one_time_checks_account_purpose_key** / **tokens_account_purpose_key**:
   one check and one token per (account, purpose).

4. **PostgresAccountLock**: session-level pg_advisory_lock keyed by the
   account id, so that check-then-act sequences in the domain are
   serialized across processes. Repository calls made under the lock run on
   the lock's connection, so a holder needs one pool slot, not two.
"""

import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import asdict, fields
from datetime import date, datetime
from pathlib import Path
from typing import Any

import psycopg
from psycopg.errors import QueryCanceled
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from src.domain.models import (
    DETAILS_BY_LEVEL,
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

logger = logging.getLogger(__name__)

_DATE_FIELDS = {"birth_date", "expiration_date"}

_ACCOUNT_COLUMNS = """
    a.id::text AS account_id, a.name AS account_name, a.email AS account_email,
    a.phone AS account_phone, a.confirmed_email AS account_confirmed_email,
    a.confirmed_phone AS account_confirmed_phone, a.notifications AS account_notifications
"""


def _account_from_row(row: dict[str, Any]) -> Account:
    return Account(
        id=row["account_id"],
        name=row["account_name"],
        email=row["account_email"],
        phone=row["account_phone"],
        confirmed_email=row["account_confirmed_email"],
        confirmed_phone=row["account_confirmed_phone"],
        notifications=row["account_notifications"] or {},
    )


def _dump_details(details: LevelDetails) -> dict[str, Any]:
    data = asdict(details)
    for key, value in data.items():
        if isinstance(value, date):
            data[key] = value.isoformat()
    return data


def _load_details(level: VerificationLevel, data: dict[str, Any]) -> LevelDetails:
    details_cls = DETAILS_BY_LEVEL[level]
    kwargs = {}
    for field in fields(details_cls):
        if field.name not in data:
            continue
        value = data[field.name]
        if field.name in _DATE_FIELDS and value is not None:
            value = date.fromisoformat(value)
        kwargs[field.name] = value
    return details_cls(**kwargs)


def _request_from_row(row: dict[str, Any]) -> VerificationRequest:
    level = VerificationLevel(row["level"])
    return VerificationRequest(
        id=row["id"],
        account_id=row["account_id"],
        level=level,
        status=RequestStatus(row["status"]),
        payload=_load_details(level, row["payload"]),
    )


# Connection that holds this thread's account lock, per pool
_pinned = threading.local()


@contextmanager
def _connection(pool: ConnectionPool) -> Iterator[psycopg.Connection]:
    """
    Borrow a pooled connection, or reuse the one holding the account lock.

    Inside PostgresAccountLock.hold every repository call runs on the lock's
    own connection, so the lock holder never waits on the pool.
    """
    pinned: dict[ConnectionPool, psycopg.Connection] = _pinned.__dict__.setdefault(
        "connections", {}
    )
    conn = pinned.get(pool)
    if conn is None:
        with pool.connection() as conn:
            yield conn
        return
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise


class PostgresAccountRepository:
    """
    Implements AccountRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def create(
        self,
        name: str,
        email: str | None = None,
        phone: str | None = None,
        confirmed_email: str | None = None,
        confirmed_phone: str | None = None,
        notifications: dict[str, Any] | None = None,
    ) -> Account:
        notifications = notifications or {}
        sql = """
            INSERT INTO accounts
                (name, email, phone, confirmed_email, confirmed_phone, notifications)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING id::text
        """
        params = (name, email, phone, confirmed_email, confirmed_phone, Jsonb(notifications))
        with _connection(self._pool) as conn, conn.cursor() as cursor:
            cursor.execute(sql, params)
            account_id = cursor.fetchone()[0]
            conn.commit()
        return Account(
            id=account_id,
            name=name,
            email=email,
            phone=phone,
            confirmed_email=confirmed_email,
            confirmed_phone=confirmed_phone,
            notifications=notifications,
        )

    def get(self, account_id: str) -> Account | None:
        sql = f"SELECT {_ACCOUNT_COLUMNS} FROM accounts a WHERE a.id = %s"
        with _connection(self._pool) as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (account_id,))
            row = cursor.fetchone()
        return _account_from_row(row) if row is not None else None

    def save(self, account: Account) -> None:
        sql = """
            UPDATE accounts
            SET name = %s, email = %s, phone = %s, confirmed_email = %s, confirmed_phone = %s,
                notifications = %s
            WHERE id = %s
        """
        with _connection(self._pool) as conn, conn.cursor() as cursor:
            cursor.execute(
                sql,
                (
                    account.name,
                    account.email,
                    account.phone,
                    account.confirmed_email,
                    account.confirmed_phone,
                    Jsonb(account.notifications),
                    account.id,
                ),
            )
            conn.commit()


class PostgresSignatureRepository:
    """Implements SignatureRepository protocol via psycopg3."""

    _SELECT = f"""
        SELECT s.id::text AS id, s.type, s.value, {_ACCOUNT_COLUMNS}
        FROM signatures s
        JOIN accounts a ON a.id = s.account_id
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def find_one(self, type_: str, value: str) -> Signature | None:
        sql = self._SELECT + " WHERE s.type = %s AND s.value = %s"
        with _connection(self._pool) as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (type_, value))
            row = cursor.fetchone()
        return self._from_row(row) if row is not None else None

    def find(self, type_: str, values: Iterable[str]) -> Iterator[Signature]:
        sql = self._SELECT + " WHERE s.type = %s AND s.value = ANY(%s)"
        with _connection(self._pool) as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (type_, list(values)))
            rows = cursor.fetchall()
        return (self._from_row(row) for row in rows)

    def create_with_account(self, type_: str, value: str, account_name: str) -> Signature:
        """
        Create account and signature in one transaction.

        Uses INSERT ... ON CONFLICT DO NOTHING on the (type, value) unique
        constraint. When the signature already exists the transaction is
        rolled back, discarding the new account, and the winner is returned.
        """
        account_sql = "INSERT INTO accounts (name) VALUES (%s) RETURNING id"
        signature_sql = """
            INSERT INTO signatures (account_id, type, value)
            VALUES (%s, %s, %s)
            ON CONFLICT (type, value) DO NOTHING
            RETURNING id
        """
        with _connection(self._pool) as conn, conn.cursor() as cursor:
            cursor.execute(account_sql, (account_name,))
            account_id = cursor.fetchone()[0]
            cursor.execute(signature_sql, (account_id, type_, value))
            if cursor.fetchone() is None:
                conn.rollback()
            else:
                conn.commit()

        signature = self.find_one(type_, value)
        if signature is None:
            raise RuntimeError(f"Signature {type_}:{value} vanished after creation")
        return signature

    @staticmethod
    def _from_row(row: dict[str, Any]) -> Signature:
        return Signature(
            id=row["id"],
            account_id=row["account_id"],
            type=row["type"],
            value=row["value"],
            account=_account_from_row(row),
        )


class PostgresVerificationRequestRepository:
    """Implements VerificationRequestRepository protocol via psycopg3."""

    _SELECT = """
        SELECT id::text AS id, account_id::text AS account_id, level, status, payload
        FROM verification_requests
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def find_active(self, account_id: str, level: VerificationLevel) -> VerificationRequest | None:
        sql = self._SELECT + " WHERE account_id = %s AND level = %s AND status = %s"
        with _connection(self._pool) as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (account_id, level.value, RequestStatus.CREATED.value))
            row = cursor.fetchone()
        return _request_from_row(row) if row is not None else None

    def find_for_account(self, account_id: str) -> Iterator[VerificationRequest]:
        sql = self._SELECT + " WHERE account_id = %s ORDER BY level, created_at"
        with _connection(self._pool) as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(sql, (account_id,))
            rows = cursor.fetchall()
        return (_request_from_row(row) for row in rows)

    def create(
        self, account_id: str, level: VerificationLevel, payload: LevelDetails
    ) -> VerificationRequest:
        sql = """
            INSERT INTO verification_requests (account_id, level, status, payload)
            VALUES (%s, %s, %s, %s)
            RETURNING id::text
        """
        with _connection(self._pool) as conn, conn.cursor() as cursor:
            cursor.execute(
                sql,
                (
                    account_id,
                    level.value,
                    RequestStatus.CREATED.value,
                    Jsonb(_dump_details(payload)),
                ),
            )
            request_id = cursor.fetchone()[0]
            conn.commit()
        return VerificationRequest(
            id=request_id, account_id=account_id, level=level, payload=payload
        )

    def save(self, request: VerificationRequest) -> None:
        sql = """
            UPDATE verification_requests
            SET payload = %s, status = %s, updated_at = NOW()
            WHERE id = %s
        """
        with _connection(self._pool) as conn, conn.cursor() as cursor:
            cursor.execute(
                sql, (Jsonb(_dump_details(request.payload)), request.status.value, request.id)
            )
            conn.commit()


class PostgresCheckRepository:
    """Implements CheckRepository protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def remove_all(self, account_id: str, purpose: CheckPurpose) -> int:
        sql = "DELETE FROM one_time_checks WHERE account_id = %s AND purpose = %s"
        with _connection(self._pool) as conn, conn.cursor() as cursor:
            cursor.execute(sql, (account_id, purpose.value))
            conn.commit()
            return cursor.rowcount

    def create(
        self, account_id: str, purpose: CheckPurpose, payload: str, code_hash: str
    ) -> OneTimeCheck:
        sql = """
            INSERT INTO one_time_checks (account_id, purpose, payload, code_hash)
            VALUES (%s, %s, %s, %s)
            RETURNING id::text, created_at
        """
        with _connection(self._pool) as conn, conn.cursor() as cursor:
            cursor.execute(sql, (account_id, purpose.value, payload, code_hash))
            check_id, created_at = cursor.fetchone()
            conn.commit()
        return OneTimeCheck(
            id=check_id,
            account_id=account_id,
            purpose=purpose,
            payload=payload,
            code_hash=code_hash,
            created_at=created_at,
        )

    def find(self, account_id: str, purpose: CheckPurpose, payload: str) -> Iterator[OneTimeCheck]:
        sql = """
            SELECT id::text, code_hash, created_at
            FROM one_time_checks
            WHERE account_id = %s AND purpose = %s AND payload = %s
        """
        with _connection(self._pool) as conn, conn.cursor() as cursor:
            cursor.execute(sql, (account_id, purpose.value, payload))
            rows = cursor.fetchall()
        return (
            OneTimeCheck(
                id=check_id,
                account_id=account_id,
                purpose=purpose,
                payload=payload,
                code_hash=code_hash,
                created_at=created_at,
            )
            for check_id, code_hash, created_at in rows
        )

    def remove(self, check: OneTimeCheck) -> bool:
        with _connection(self._pool) as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM one_time_checks WHERE id = %s", (check.id,))
            conn.commit()
            # rowcount is 0 when a concurrent caller consumed it first
            return cursor.rowcount == 1


class PostgresTokenRepository:
    """Implements TokenRepository protocol via psycopg3."""

    _SELECT = f"""
        SELECT t.id::text AS id, t.purpose, t.value, t.created_at, t.expires_at, {_ACCOUNT_COLUMNS}
        FROM tokens t
        JOIN accounts a ON a.id = t.account_id
    """

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def find_by_value(self, value: str) -> Token | None:
        return self._fetch_one(" WHERE t.value = %s", (value,))

    def find_by_purpose(self, account_id: str, purpose: str) -> Token | None:
        return self._fetch_one(" WHERE t.account_id = %s AND t.purpose = %s", (account_id, purpose))

    def get(self, token_id: str) -> Token | None:
        return self._fetch_one(" WHERE t.id = %s", (token_id,))

    def create(self, account_id: str, purpose: str, value: str, expires_at: datetime) -> Token:
        sql = """
            INSERT INTO tokens (account_id, purpose, value, expires_at)
            VALUES (%s, %s, %s, %s)
            RETURNING id::text, created_at
        """
        with _connection(self._pool) as conn, conn.cursor() as cursor:
            cursor.execute(sql, (account_id, purpose, value, expires_at))
            token_id, created_at = cursor.fetchone()
            conn.commit()
        return Token(
            id=token_id,
            account_id=account_id,
            purpose=purpose,
            value=value,
            created_at=created_at,
            expires_at=expires_at,
        )

    def save(self, token: Token) -> None:
        sql = "UPDATE tokens SET expires_at = %s, updated_at = NOW() WHERE id = %s"
        with _connection(self._pool) as conn, conn.cursor() as cursor:
            cursor.execute(sql, (token.expires_at, token.id))
            conn.commit()

    def remove(self, token: Token) -> None:
        with _connection(self._pool) as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM tokens WHERE id = %s", (token.id,))
            conn.commit()

    def _fetch_one(self, where: str, params: tuple[Any, ...]) -> Token | None:
        with _connection(self._pool) as conn, conn.cursor(row_factory=dict_row) as cursor:
            cursor.execute(self._SELECT + where, params)
            row = cursor.fetchone()
        if row is None:
            return None
        return Token(
            id=row["id"],
            account_id=row["account_id"],
            purpose=row["purpose"],
            value=row["value"],
            created_at=row["created_at"],
            expires_at=row["expires_at"],
            account=_account_from_row(row),
        )


class PostgresAccountLock:
    """
    Implements AccountLock protocol with session-level advisory locks.

    The lock is taken on one pooled connection, which stays pinned to the
    holding thread: every repository call made while the lock is held runs
    on that same connection. Nested holds in one thread reuse it.

    Waiting for the lock is bounded by statement_timeout; a caller that
    times out gets QueryCanceled.
    """

    def __init__(self, pool: ConnectionPool, wait_timeout: float = 30.0) -> None:
        self._pool = pool
        self._wait_timeout_ms = str(int(wait_timeout * 1000))
        self._local = threading.local()

    @contextmanager
    def hold(self, account_id: str) -> Iterator[None]:
        held: dict[str, int] = self._local.__dict__.setdefault("held", {})
        if held.get(account_id):
            held[account_id] += 1
            try:
                yield
            finally:
                held[account_id] -= 1
            return

        pinned = _pinned.__dict__.setdefault("connections", {})
        with _connection(self._pool) as conn:
            # set_config(..., true) only lasts until the commit below
            conn.execute(
                "SELECT set_config('statement_timeout', %s, true)", (self._wait_timeout_ms,)
            )
            try:
                conn.execute("SELECT pg_advisory_lock(hashtext(%s))", (account_id,))
            except QueryCanceled:
                logger.warning("Timed out waiting for the lock on account %s", account_id)
                raise
            conn.commit()

            outer = pinned.get(self._pool)
            pinned[self._pool] = conn
            held[account_id] = 1
            try:
                yield
            finally:
                held.pop(account_id, None)
                if outer is None:
                    pinned.pop(self._pool, None)
                else:
                    pinned[self._pool] = outer
                conn.rollback()
                conn.execute("SELECT pg_advisory_unlock(hashtext(%s))", (account_id,))
                conn.commit()


def run_migrations(pool: ConnectionPool) -> None:
    """
    Apply every migrations/*.sql script in filename order.

    Scripts are idempotent and run on each startup.

    Raises:
        RuntimeError: A script failed; the original error is chained
    """
    migrations_dir = Path(__file__).resolve().parents[3] / "migrations"
    scripts = sorted(migrations_dir.glob("*.sql"))
    if not scripts:
        logger.warning("No migrations found in %s", migrations_dir)
        return

    for script in scripts:
        try:
            with pool.connection() as conn:
                conn.execute(script.read_text())
        except psycopg.Error as e:
            logger.error("Migration %s failed: %s", script.name, e)
            raise RuntimeError(f"Database migration failed: {script.name}") from e
        logger.info("Applied migration %s", script.name)
