"""Meeting suggestion repository."""

from __future__ import annotations

from datetime import datetime

from convoq.infrastructure.database import Database, retry_on_db_lock
from convoq.storage import BaseRepository
from convoq.storage.models import MeetingSuggestionRecord
from convoq.utils.clock import to_db_timestamp


class MeetingSuggestionRepository(BaseRepository):
    def __init__(self, db: Database) -> None:
        super().__init__(db, "meeting_suggestions")

    @retry_on_db_lock()
    def upsert(self, record: MeetingSuggestionRecord) -> None:
        data = record.to_db_dict()
        self.execute(
            """
            INSERT OR REPLACE INTO meeting_suggestions (
                conversation_id, suggestions, duration_minutes,
                participant_count, generated_at, expires_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                data["conversation_id"],
                data["suggestions"],
                data["duration_minutes"],
                data["participant_count"],
                data["generated_at"],
                data["expires_at"],
            ),
        )

    def get(self, conversation_id: str) -> MeetingSuggestionRecord | None:
        row = self.query_one(
            "SELECT * FROM meeting_suggestions WHERE conversation_id = ?", (conversation_id,)
        )
        return MeetingSuggestionRecord.from_db_row(row) if row else None

    @retry_on_db_lock()
    def delete(self, conversation_id: str) -> bool:
        return (
            self.execute(
                "DELETE FROM meeting_suggestions WHERE conversation_id = ?", (conversation_id,)
            )
            > 0
        )

    @retry_on_db_lock()
    def delete_expired(self, now: datetime) -> int:
        return self.execute(
            "DELETE FROM meeting_suggestions WHERE expires_at < ?", (to_db_timestamp(now),)
        )
