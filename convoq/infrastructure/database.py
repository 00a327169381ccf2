"""Local SQLite store configuration

convoq keeps its local replica (messages, conversations, cached AI results,
synced insights) in ONE SQLite database owned by the host application.

Provides:
- A Database handle that serializes access to a single connection
- Transaction context manager (commit on success, rollback on error)
- retry_on_db_lock decorator for transient SQLITE_BUSY contention
- Schema initialization via database_schema.init_database

The handle is injected into the repositories, so tests can run against an
in-memory database without touching the host's file.
"""

from __future__ import annotations

import os
import random
import sqlite3
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from functools import wraps
from pathlib import Path
from threading import RLock
from typing import Any, TypeVar

from convoq.config import (
    DB_CONNECT_TIMEOUT,
    DB_PATH,
    DB_RETRY_BASE_DELAY,
    DB_RETRY_JITTER,
    DB_RETRY_MAX,
    DB_RETRY_MAX_DELAY,
)
from convoq.observability.logging import get_logger
from convoq.observability.telemetry import counter

F = TypeVar("F", bound=Callable[..., Any])

MEMORY_DB = ":memory:"

logger = get_logger(__name__)


def retry_on_db_lock(
    max_retries: int = DB_RETRY_MAX,
    base_delay: float = DB_RETRY_BASE_DELAY,
    max_delay: float = DB_RETRY_MAX_DELAY,
) -> Callable[[F], F]:
    """
    Decorator to retry database operations on SQLITE_BUSY errors

    Implements exponential backoff with jitter for transient lock contention.
    Any other OperationalError propagates immediately.

    Usage:
        @retry_on_db_lock()
        def upsert(self, record):
            with self.db.transaction() as conn:
                conn.execute("INSERT OR REPLACE INTO ...")

    Side Effects:
        - Sleeps between retries (exponential backoff with jitter)
        - Logs a warning for each retry and an error when retries are exhausted
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_error = None

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)

                except sqlite3.OperationalError as e:
                    last_error = e

                    if "locked" not in str(e).lower() and "busy" not in str(e).lower():
                        raise

                    if attempt >= max_retries:
                        logger.error(
                            "Database lock retry exhausted after %d attempts: %s",
                            max_retries,
                            e,
                        )
                        counter("database.lock_retry_exhausted")
                        raise

                    delay = min(base_delay * (2**attempt), max_delay)
                    sleep_time = delay + random.uniform(0, delay * DB_RETRY_JITTER)

                    logger.warning(
                        "Database locked (attempt %d/%d), retrying in %.2fs: %s",
                        attempt + 1,
                        max_retries,
                        sleep_time,
                        e,
                    )

                    time.sleep(sleep_time)

            raise last_error  # type: ignore

        return wrapper  # type: ignore[return-value]

    return decorator


def get_db_path() -> Path:
    """
    Get database path (environment-aware)

    Checks CONVOQ_DB_PATH at call time, falls back to the configured default.
    """
    if env_path := os.getenv("CONVOQ_DB_PATH"):
        return Path(env_path)

    return DB_PATH


class Database:
    """
    Handle for the local SQLite store.

    One connection per handle, guarded by a re-entrant lock so a repository
    method can open a transaction while already holding the connection.
    """

    def __init__(self, db_path: Path | str = MEMORY_DB, timeout: float = DB_CONNECT_TIMEOUT):
        self.db_path = str(db_path)
        self.timeout = timeout
        self.lock = RLock()
        self.closed = False
        self._conn = self._create_connection()

    @property
    def is_memory(self) -> bool:
        return self.db_path == MEMORY_DB

    def _create_connection(self) -> sqlite3.Connection:
        """
        Create SQLite connection with the store's settings

        Raises:
            RuntimeError: If a file database fails its integrity check
        """
        if not self.is_memory:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(self.db_path, timeout=self.timeout, check_same_thread=False)

        if not self.is_memory:
            try:
                result = conn.execute("PRAGMA quick_check(1)").fetchone()
            except sqlite3.DatabaseError as e:
                conn.close()
                logger.critical("Database corruption or error during integrity check: %s", e)
                counter("database.corruption_detected")
                raise RuntimeError(f"Database corruption detected: {e}") from e
            if result[0] != "ok":
                conn.close()
                logger.critical("Database corruption detected: %s", result[0])
                counter("database.corruption_detected")
                raise RuntimeError(f"Database corruption detected: {result[0]}")

            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")

        conn.execute("PRAGMA foreign_keys=ON")
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Borrow the store's connection (context manager)

        Usage:
            with db.connection() as conn:
                rows = conn.execute("SELECT * FROM messages").fetchall()
        """
        if self.closed:
            raise RuntimeError("Database handle has been closed")

        with self.lock:
            yield self._conn

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database transactions

        Commits on success, rolls back on error.
        """
        with self.connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def close(self) -> None:
        with self.lock:
            if not self.closed:
                self._conn.close()
                self.closed = True


def open_database(db_path: Path | str | None = None) -> Database:
    """
    Open the local store and make sure its schema exists (idempotent)

    Args:
        db_path: Database file, ":memory:", or None for the configured path

    Side Effects:
        - Creates the data directory and database file if needed
        - Creates tables and indexes that don't exist yet
    """
    from convoq.infrastructure.database_schema import init_database

    db = Database(get_db_path() if db_path is None else db_path)
    init_database(db)
    return db
