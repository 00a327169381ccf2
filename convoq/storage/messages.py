"""
Message and conversation repositories.

Rows are written by the host's messaging layer; convoq reads them to decide
whether a mutation carries a qualifying scheduling signal.
"""

from __future__ import annotations

from convoq.infrastructure.database import Database, retry_on_db_lock
from convoq.storage import BaseRepository
from convoq.storage.models import ConversationRecord, MessageRecord


class MessageRepository(BaseRepository):
    def __init__(self, db: Database) -> None:
        super().__init__(db, "messages")

    @retry_on_db_lock()
    def upsert(self, message: MessageRecord) -> None:
        data = message.to_db_dict()
        self.execute(
            """
            INSERT OR REPLACE INTO messages (
                id, conversation_id, sender_id, text,
                scheduling_intent, intent_confidence, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                data["id"],
                data["conversation_id"],
                data["sender_id"],
                data["text"],
                data["scheduling_intent"],
                data["intent_confidence"],
                data["created_at"],
            ),
        )

    def get(self, message_id: str) -> MessageRecord | None:
        row = self.query_one("SELECT * FROM messages WHERE id = ?", (message_id,))
        return MessageRecord.from_db_row(row) if row else None

    def list_for_conversation(self, conversation_id: str, limit: int = 50) -> list[MessageRecord]:
        """Most recent messages first."""
        rows = self.query_all(
            """
            SELECT * FROM messages
            WHERE conversation_id = ?
            ORDER BY created_at DESC
            LIMIT ?
            """,
            (conversation_id, limit),
        )
        return [MessageRecord.from_db_row(row) for row in rows]


class ConversationRepository(BaseRepository):
    def __init__(self, db: Database) -> None:
        super().__init__(db, "conversations")

    @retry_on_db_lock()
    def upsert(self, conversation: ConversationRecord) -> None:
        data = conversation.to_db_dict()
        self.execute(
            "INSERT OR REPLACE INTO conversations (id, participant_ids, updated_at) VALUES (?, ?, ?)",
            (data["id"], data["participant_ids"], data["updated_at"]),
        )

    def get(self, conversation_id: str) -> ConversationRecord | None:
        row = self.query_one("SELECT * FROM conversations WHERE id = ?", (conversation_id,))
        return ConversationRecord.from_db_row(row) if row else None
