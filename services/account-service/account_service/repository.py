"""Persistence for account records."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
import itertools
import logging
from threading import Lock
from typing import Protocol

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool, PoolTimeout

from .domain.account import Account
from .domain.contracts import NewAccountFields
from .domain.deadline import Deadline
from .domain.errors import DuplicateEmailError, RepositoryError

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS accounts (
    account_id BIGSERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    age INTEGER NOT NULL DEFAULT 0 CHECK (age >= 0),
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""

_COLUMNS = "account_id, name, age, email, password_hash, created_at, updated_at"


class AccountRepository(Protocol):
    """Storage contract consumed by :class:`AccountService`.

    Lookups return ``None`` for missing records. Failures raise
    :class:`RepositoryError`; a clash on the unique email raises
    :class:`DuplicateEmailError`.
    """

    def create_account(
        self, fields: NewAccountFields, *, deadline: Deadline | None = None
    ) -> Account: ...

    def list_accounts(
        self, offset: int, limit: int, *, deadline: Deadline | None = None
    ) -> list[Account]: ...

    def get_account(
        self, account_id: int, *, deadline: Deadline | None = None
    ) -> Account | None: ...

    def get_account_by_email(
        self, email: str, *, deadline: Deadline | None = None
    ) -> Account | None: ...

    def update_account(
        self, account: Account, *, deadline: Deadline | None = None
    ) -> Account: ...

    def delete_account(
        self, account_id: int, *, deadline: Deadline | None = None
    ) -> bool: ...


class PostgresAccountRepository:
    """Postgres-backed account persistence."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def ensure_schema(self) -> None:
        """Create the ``accounts`` table when it does not exist yet."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            conn.commit()
        logger.info("accounts schema is up to date")

    def _connection(self, deadline: Deadline | None):
        """Borrow a pooled connection, waiting no longer than the remaining budget."""
        if deadline is None:
            return self._pool.connection()
        return self._pool.connection(timeout=max(deadline.remaining(), 0.001))

    def _apply_deadline(self, cur: psycopg.Cursor, deadline: Deadline | None) -> None:
        """Bound the current transaction's statements by the remaining budget."""
        if deadline is None:
            return
        remaining_ms = max(1, int(deadline.remaining() * 1000))
        cur.execute("SELECT set_config('statement_timeout', %s, true)", (str(remaining_ms),))

    def create_account(
        self, fields: NewAccountFields, *, deadline: Deadline | None = None
    ) -> Account:
        """Insert a new account row and return the stored aggregate."""
        try:
            with self._connection(deadline) as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    self._apply_deadline(cur, deadline)
                    cur.execute(
                        f"""
                        INSERT INTO accounts (name, age, email, password_hash)
                        VALUES (%s, %s, %s, %s)
                        RETURNING {_COLUMNS}
                        """,
                        (fields.name, fields.age, fields.email, fields.password_hash),
                    )
                    row = cur.fetchone()
                conn.commit()
        except pg_errors.UniqueViolation as exc:
            raise DuplicateEmailError("email already registered") from exc
        except (psycopg.Error, PoolTimeout) as exc:
            logger.error("failed to insert account: %s", exc)
            raise RepositoryError("failed to insert account") from exc
        return self._map_record(row)

    def list_accounts(
        self, offset: int, limit: int, *, deadline: Deadline | None = None
    ) -> list[Account]:
        """Return a page of accounts in insertion order."""
        try:
            with self._connection(deadline) as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    self._apply_deadline(cur, deadline)
                    cur.execute(
                        f"""
                        SELECT {_COLUMNS}
                        FROM accounts
                        ORDER BY account_id
                        LIMIT %s OFFSET %s
                        """,
                        (limit, offset),
                    )
                    rows = cur.fetchall()
        except (psycopg.Error, PoolTimeout) as exc:
            logger.error("failed to list accounts (offset=%s, limit=%s): %s", offset, limit, exc)
            raise RepositoryError("failed to list accounts") from exc
        return [self._map_record(row) for row in rows]

    def get_account(
        self, account_id: int, *, deadline: Deadline | None = None
    ) -> Account | None:
        """Fetch an account by primary key or return ``None``."""
        return self._fetch_one("account_id = %s", account_id, deadline)

    def get_account_by_email(
        self, email: str, *, deadline: Deadline | None = None
    ) -> Account | None:
        """Fetch an account by its unique email or return ``None``."""
        return self._fetch_one("email = %s", email, deadline)

    def _fetch_one(
        self, where: str, value: object, deadline: Deadline | None
    ) -> Account | None:
        try:
            with self._connection(deadline) as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    self._apply_deadline(cur, deadline)
                    cur.execute(f"SELECT {_COLUMNS} FROM accounts WHERE {where}", (value,))
                    row = cur.fetchone()
        except (psycopg.Error, PoolTimeout) as exc:
            logger.error("failed to fetch account: %s", exc)
            raise RepositoryError("failed to fetch account") from exc
        if not row:
            return None
        return self._map_record(row)

    def update_account(
        self, account: Account, *, deadline: Deadline | None = None
    ) -> Account:
        """Persist the mutable fields of ``account`` and return the stored row."""
        try:
            with self._connection(deadline) as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    self._apply_deadline(cur, deadline)
                    cur.execute(
                        f"""
                        UPDATE accounts
                        SET name = %s, age = %s, email = %s, password_hash = %s, updated_at = NOW()
                        WHERE account_id = %s
                        RETURNING {_COLUMNS}
                        """,
                        (
                            account.name,
                            account.age,
                            account.email,
                            account.password_hash,
                            account.account_id,
                        ),
                    )
                    row = cur.fetchone()
                conn.commit()
        except pg_errors.UniqueViolation as exc:
            raise DuplicateEmailError("email already registered") from exc
        except (psycopg.Error, PoolTimeout) as exc:
            logger.error("failed to update account %s: %s", account.account_id, exc)
            raise RepositoryError("failed to update account") from exc
        if not row:
            raise RepositoryError(f"account {account.account_id} vanished during update")
        return self._map_record(row)

    def delete_account(
        self, account_id: int, *, deadline: Deadline | None = None
    ) -> bool:
        """Delete the account row; return ``False`` when nothing was removed."""
        try:
            with self._connection(deadline) as conn:
                with conn.cursor() as cur:
                    self._apply_deadline(cur, deadline)
                    cur.execute("DELETE FROM accounts WHERE account_id = %s", (account_id,))
                    deleted = cur.rowcount > 0
                conn.commit()
        except (psycopg.Error, PoolTimeout) as exc:
            logger.error("failed to delete account %s: %s", account_id, exc)
            raise RepositoryError("failed to delete account") from exc
        return deleted

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=row[0],
            name=row[1],
            age=row[2],
            email=row[3],
            password_hash=row[4],
            created_at=row[5],
            updated_at=row[6],
        )


class InMemoryAccountRepository:
    """Process-local repository mimicking the Postgres behaviors.

    Writes are serialised by a lock so the email uniqueness check and the
    insert happen atomically.
    """

    def __init__(self) -> None:
        self._accounts: dict[int, Account] = {}
        self._ids = itertools.count(1)
        self._lock = Lock()

    def create_account(
        self, fields: NewAccountFields, *, deadline: Deadline | None = None
    ) -> Account:
        with self._lock:
            if self._email_taken(fields.email, exclude=None):
                raise DuplicateEmailError("email already registered")
            now = datetime.now(timezone.utc)
            account = Account(
                account_id=next(self._ids),
                name=fields.name,
                age=fields.age,
                email=fields.email,
                password_hash=fields.password_hash,
                created_at=now,
                updated_at=now,
            )
            self._accounts[account.account_id] = account
            return replace(account)

    def list_accounts(
        self, offset: int, limit: int, *, deadline: Deadline | None = None
    ) -> list[Account]:
        with self._lock:
            ordered = sorted(self._accounts.values(), key=lambda a: a.account_id)
            return [replace(a) for a in ordered[offset : offset + limit]]

    def get_account(
        self, account_id: int, *, deadline: Deadline | None = None
    ) -> Account | None:
        with self._lock:
            account = self._accounts.get(account_id)
            return replace(account) if account else None

    def get_account_by_email(
        self, email: str, *, deadline: Deadline | None = None
    ) -> Account | None:
        with self._lock:
            for account in self._accounts.values():
                if account.email == email:
                    return replace(account)
            return None

    def update_account(
        self, account: Account, *, deadline: Deadline | None = None
    ) -> Account:
        with self._lock:
            if account.account_id not in self._accounts:
                raise RepositoryError(f"account {account.account_id} vanished during update")
            if self._email_taken(account.email, exclude=account.account_id):
                raise DuplicateEmailError("email already registered")
            stored = replace(account, updated_at=datetime.now(timezone.utc))
            self._accounts[account.account_id] = stored
            return replace(stored)

    def delete_account(
        self, account_id: int, *, deadline: Deadline | None = None
    ) -> bool:
        with self._lock:
            return self._accounts.pop(account_id, None) is not None

    def _email_taken(self, email: str, exclude: int | None) -> bool:
        return any(
            a.email == email and a.account_id != exclude for a in self._accounts.values()
        )
