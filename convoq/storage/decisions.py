"""Decision repository, keyed by the remote decision id."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from convoq.infrastructure.database import Database, retry_on_db_lock
from convoq.storage import BaseRepository
from convoq.storage.models import DecisionRecord, FollowUpStatus
from convoq.utils.clock import to_db_timestamp


class DecisionRepository(BaseRepository):
    def __init__(self, db: Database) -> None:
        super().__init__(db, "decisions")

    @retry_on_db_lock()
    def upsert(self, record: DecisionRecord) -> None:
        self.execute(
            """
            INSERT OR REPLACE INTO decisions (
                id, conversation_id, decision_text, context_summary, participant_ids,
                decided_at, follow_up_status, confidence_score, reminder_date,
                created_at, updated_at
            ) VALUES (:id, :conversation_id, :decision_text, :context_summary,
                      :participant_ids, :decided_at, :follow_up_status, :confidence_score,
                      :reminder_date, :created_at, :updated_at)
            """,
            record.to_db_dict(),
        )

    def get(self, decision_id: str) -> DecisionRecord | None:
        row = self.query_one("SELECT * FROM decisions WHERE id = ?", (decision_id,))
        return DecisionRecord.from_db_row(row) if row else None

    def list_for_conversation(self, conversation_id: str) -> list[DecisionRecord]:
        """Newest decision first."""
        rows = self.query_all(
            "SELECT * FROM decisions WHERE conversation_id = ? ORDER BY decided_at DESC",
            (conversation_id,),
        )
        return [DecisionRecord.from_db_row(row) for row in rows]

    def list_all(self) -> list[DecisionRecord]:
        rows = self.query_all("SELECT * FROM decisions ORDER BY decided_at DESC")
        return [DecisionRecord.from_db_row(row) for row in rows]

    @retry_on_db_lock()
    def update_status(
        self, decision_id: str, status: FollowUpStatus, updated_at: datetime
    ) -> bool:
        return (
            self.execute(
                "UPDATE decisions SET follow_up_status = ?, updated_at = ? WHERE id = ?",
                (status, to_db_timestamp(updated_at), decision_id),
            )
            > 0
        )

    @retry_on_db_lock()
    def delete(self, decision_id: str) -> bool:
        return self.execute("DELETE FROM decisions WHERE id = ?", (decision_id,)) > 0

    @retry_on_db_lock()
    def delete_missing(self, conversation_id: str, keep_ids: Iterable[str]) -> int:
        """Delete the conversation's decisions whose id is not in `keep_ids`."""
        keep = list(keep_ids)
        if not keep:
            return self.execute(
                "DELETE FROM decisions WHERE conversation_id = ?", (conversation_id,)
            )
        placeholders = ", ".join("?" for _ in keep)
        return self.execute(
            f"DELETE FROM decisions WHERE conversation_id = ? AND id NOT IN ({placeholders})",
            (conversation_id, *keep),
        )
