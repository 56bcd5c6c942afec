"""
Storage Backend Module

Owns the SQLite connection and the relational schema for accounts, session
tokens and the transaction log. All monetary values are stored as integer
minor units. The storage handle is created explicitly by the application and
passed to every service; nothing here is a process-wide singleton.
"""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from .errors import StorageError, TransientLockTimeout
from .logging_config import get_logger


SCHEMA = """
CREATE TABLE IF NOT EXISTS accounts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    password_salt TEXT NOT NULL,
    phone TEXT,
    account_number TEXT NOT NULL UNIQUE,
    balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0),
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS session_tokens (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    token TEXT NOT NULL UNIQUE,
    account_id INTEGER NOT NULL REFERENCES accounts(id),
    expires_at INTEGER NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_session_tokens_account
    ON session_tokens(account_id);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    type TEXT NOT NULL CHECK (type IN ('DEPOSIT', 'WITHDRAW', 'TRANSFER')),
    from_account TEXT NOT NULL,
    to_account TEXT NOT NULL,
    amount INTEGER NOT NULL CHECK (amount > 0),
    description TEXT NOT NULL,
    from_name TEXT,
    to_name TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_transactions_from
    ON transactions(from_account, created_at);
CREATE INDEX IF NOT EXISTS idx_transactions_to
    ON transactions(to_account, created_at);

CREATE TRIGGER IF NOT EXISTS transactions_no_update
    BEFORE UPDATE ON transactions
BEGIN
    SELECT RAISE(ABORT, 'transactions are append-only');
END;

CREATE TRIGGER IF NOT EXISTS transactions_no_delete
    BEFORE DELETE ON transactions
BEGIN
    SELECT RAISE(ABORT, 'transactions are append-only');
END;
"""


class ConstraintViolation(StorageError):
    """A UNIQUE or CHECK constraint rejected a write"""

    def __init__(self, message: str):
        super().__init__(message)
        # sqlite reports e.g. "UNIQUE constraint failed: accounts.email"
        self.column = message.rsplit(":", 1)[-1].strip() if ":" in message else None


class SQLiteStorage:
    """
    SQLite storage with an explicit all-or-nothing transaction boundary.

    A single connection is shared between worker threads and guarded by a
    re-entrant lock. ``atomic()`` keeps that lock for the whole transaction so
    statements issued by other threads cannot land inside it.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:", lock_timeout: float = 5.0):
        self.db_path = str(db_path)
        self.lock_timeout = lock_timeout
        self.logger = get_logger("kodbank.storage")
        self._lock = threading.RLock()
        self._depth = 0

        # isolation_level=None: no implicit transactions, BEGIN/COMMIT are ours
        self._connection = sqlite3.connect(
            self.db_path, check_same_thread=False, isolation_level=None
        )
        self._connection.row_factory = sqlite3.Row
        self._connection.execute("PRAGMA foreign_keys = ON")

        if self.db_path != ":memory:":
            self._connection.execute("PRAGMA journal_mode = WAL")
            self._connection.execute("PRAGMA synchronous = NORMAL")

        self._connection.executescript(SCHEMA)
        self.logger.debug(f"Storage opened at {self.db_path}")

    @contextmanager
    def _locked(self, timeout: Optional[float] = None) -> Iterator[None]:
        wait = self.lock_timeout if timeout is None else timeout
        if not self._lock.acquire(timeout=wait):
            raise TransientLockTimeout("Storage is busy, please retry")
        try:
            yield
        finally:
            self._lock.release()

    def _check_open(self) -> sqlite3.Connection:
        if self._connection is None:
            raise StorageError("Storage is closed")
        return self._connection

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """Run a single statement; outside ``atomic()`` it commits immediately"""
        with self._locked():
            connection = self._check_open()
            try:
                return connection.execute(sql, params)
            except sqlite3.IntegrityError as e:
                raise ConstraintViolation(str(e)) from e
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        with self._locked():
            row = self.execute(sql, params).fetchone()
            return dict(row) if row else None

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        with self._locked():
            return [dict(row) for row in self.execute(sql, params).fetchall()]

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def atomic(self, timeout: Optional[float] = None) -> Iterator['SQLiteStorage']:
        """
        Context manager for atomic operations.

        Nested blocks join the outermost transaction. Any exception rolls the
        whole unit back and is re-raised.
        """
        with self._locked(timeout):
            connection = self._check_open()
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            try:
                connection.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e

            self._depth = 1
            try:
                yield self
            except BaseException:
                self._depth = 0
                connection.rollback()
                raise
            else:
                self._depth = 0
                try:
                    connection.commit()
                except sqlite3.Error as e:
                    connection.rollback()
                    raise StorageError(str(e)) from e

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                self.logger.debug(f"Storage closed at {self.db_path}")

    def __enter__(self) -> 'SQLiteStorage':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
