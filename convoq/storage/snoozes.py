"""Scheduling snooze repository (one row per conversation)."""

from __future__ import annotations

from datetime import datetime

from convoq.infrastructure.database import Database, retry_on_db_lock
from convoq.storage import BaseRepository
from convoq.storage.models import SnoozeRecord
from convoq.utils.clock import from_db_timestamp, to_db_timestamp


class SnoozeRepository(BaseRepository):
    def __init__(self, db: Database) -> None:
        super().__init__(db, "scheduling_snoozes")

    @retry_on_db_lock()
    def upsert(self, record: SnoozeRecord) -> None:
        """Insert or overwrite the conversation's snooze."""
        self.execute(
            """
            INSERT INTO scheduling_snoozes (conversation_id, snoozed_until, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(conversation_id) DO UPDATE SET
                snoozed_until = excluded.snoozed_until,
                updated_at = excluded.updated_at
            """,
            (
                record.conversation_id,
                to_db_timestamp(record.snoozed_until),
                to_db_timestamp(record.updated_at),
            ),
        )

    def get(self, conversation_id: str) -> SnoozeRecord | None:
        row = self.query_one(
            "SELECT * FROM scheduling_snoozes WHERE conversation_id = ?", (conversation_id,)
        )
        if row is None:
            return None
        return SnoozeRecord(
            conversation_id=row["conversation_id"],
            snoozed_until=from_db_timestamp(row["snoozed_until"]),
            updated_at=from_db_timestamp(row["updated_at"]),
        )

    @retry_on_db_lock()
    def delete(self, conversation_id: str) -> bool:
        return (
            self.execute(
                "DELETE FROM scheduling_snoozes WHERE conversation_id = ?", (conversation_id,)
            )
            > 0
        )

    @retry_on_db_lock()
    def delete_expired(self, now: datetime) -> int:
        return self.execute(
            "DELETE FROM scheduling_snoozes WHERE snoozed_until <= ?", (to_db_timestamp(now),)
        )
