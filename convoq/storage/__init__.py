"""Storage - local store records and repositories"""

from __future__ import annotations

import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from convoq.infrastructure.database import Database


class BaseRepository:
    """Base class for local store repositories with common query helpers."""

    def __init__(self, db: Database, table_name: str) -> None:
        if not isinstance(table_name, str) or not table_name.replace("_", "").isalnum():
            raise ValueError(f"Invalid table name: {table_name}")
        self.db = db
        self.table_name = table_name

    @contextmanager
    def _get_conn(self) -> Generator[sqlite3.Connection, None, None]:
        with self.db.connection() as conn:
            yield conn

    def query_one(self, query: str, params: tuple[Any, ...] | None = None) -> dict[str, Any] | None:
        with self._get_conn() as conn:
            row = conn.execute(query, params or ()).fetchone()
            return dict(row) if row is not None else None

    def query_all(self, query: str, params: tuple[Any, ...] | None = None) -> list[dict[str, Any]]:
        with self._get_conn() as conn:
            return [dict(row) for row in conn.execute(query, params or ()).fetchall()]

    def execute(self, query: str, params: tuple[Any, ...] | None = None) -> int:
        """
        Execute a write query (INSERT, UPDATE, DELETE)

        Returns:
            Number of rows affected

        Side Effects:
            - Commits transaction automatically, rolls back on error
        """
        with self.db.transaction() as conn:
            cursor = conn.execute(query, params or ())
            return cursor.rowcount

    def count(self) -> int:
        row = self.query_one(f"SELECT COUNT(*) AS n FROM {self.table_name}")
        return row["n"] if row else 0

    def delete_all(self) -> int:
        return self.execute(f"DELETE FROM {self.table_name}")


__all__ = ["BaseRepository"]
