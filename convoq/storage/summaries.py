"""Thread summary repository."""

from __future__ import annotations

from datetime import datetime

from convoq.infrastructure.database import Database, retry_on_db_lock
from convoq.storage import BaseRepository
from convoq.storage.models import ThreadSummaryRecord
from convoq.utils.clock import to_db_timestamp


class ThreadSummaryRepository(BaseRepository):
    def __init__(self, db: Database) -> None:
        super().__init__(db, "thread_summaries")

    @retry_on_db_lock()
    def upsert(self, record: ThreadSummaryRecord) -> None:
        data = record.to_db_dict()
        self.execute(
            """
            INSERT OR REPLACE INTO thread_summaries (
                conversation_id, summary, key_points, generated_at, message_count, expires_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                data["conversation_id"],
                data["summary"],
                data["key_points"],
                data["generated_at"],
                data["message_count"],
                data["expires_at"],
            ),
        )

    def get(self, conversation_id: str) -> ThreadSummaryRecord | None:
        row = self.query_one(
            "SELECT * FROM thread_summaries WHERE conversation_id = ?", (conversation_id,)
        )
        return ThreadSummaryRecord.from_db_row(row) if row else None

    @retry_on_db_lock()
    def delete(self, conversation_id: str) -> bool:
        return (
            self.execute(
                "DELETE FROM thread_summaries WHERE conversation_id = ?", (conversation_id,)
            )
            > 0
        )

    @retry_on_db_lock()
    def delete_expired(self, now: datetime) -> int:
        return self.execute(
            "DELETE FROM thread_summaries WHERE expires_at < ?", (to_db_timestamp(now),)
        )
