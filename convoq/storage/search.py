"""
Search result and recent-query repositories.

Results for a query are replaced wholesale on every successful search, so a
query never mixes rows from two different responses.
"""

from __future__ import annotations

from datetime import datetime

from convoq.infrastructure.database import Database, retry_on_db_lock
from convoq.storage import BaseRepository
from convoq.storage.models import RecentQuery, SearchResultRecord
from convoq.utils.clock import from_db_timestamp, to_db_timestamp


class SearchResultRepository(BaseRepository):
    def __init__(self, db: Database) -> None:
        super().__init__(db, "search_results")

    @retry_on_db_lock()
    def replace_results(self, query: str, results: list[SearchResultRecord]) -> None:
        """
        Replace every stored row for `query` with `results`.

        Side Effects:
            - Deletes and inserts in one transaction
        """
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM search_results WHERE query = ?", (query,))
            conn.executemany(
                """
                INSERT INTO search_results (
                    query, conversation_id, message_id, snippet, rank, timestamp, expires_at
                ) VALUES (:query, :conversation_id, :message_id, :snippet, :rank,
                          :timestamp, :expires_at)
                """,
                [record.to_db_dict() for record in results],
            )

    def get_results(self, query: str, now: datetime) -> list[SearchResultRecord]:
        """Unexpired results for `query`, best rank first."""
        rows = self.query_all(
            """
            SELECT * FROM search_results
            WHERE query = ? AND expires_at >= ?
            ORDER BY rank ASC
            """,
            (query, to_db_timestamp(now)),
        )
        return [SearchResultRecord.from_db_row(row) for row in rows]

    @retry_on_db_lock()
    def delete_expired(self, now: datetime) -> int:
        return self.execute(
            "DELETE FROM search_results WHERE expires_at < ?", (to_db_timestamp(now),)
        )


class RecentQueryRepository(BaseRepository):
    def __init__(self, db: Database) -> None:
        super().__init__(db, "recent_queries")

    @retry_on_db_lock()
    def record(self, entry: RecentQuery) -> None:
        self.execute(
            """
            INSERT INTO recent_queries (query, searched_at, result_count)
            VALUES (?, ?, ?)
            ON CONFLICT(query) DO UPDATE SET
                searched_at = excluded.searched_at,
                result_count = excluded.result_count
            """,
            (entry.query, to_db_timestamp(entry.searched_at), entry.result_count),
        )

    def list_recent(self, limit: int = 10) -> list[RecentQuery]:
        rows = self.query_all(
            "SELECT * FROM recent_queries ORDER BY searched_at DESC LIMIT ?", (limit,)
        )
        return [
            RecentQuery(
                query=row["query"],
                searched_at=from_db_timestamp(row["searched_at"]),
                result_count=row["result_count"],
            )
            for row in rows
        ]
