"""
LocalStore - the host's local replica, one repository per table.

Coordinators receive a LocalStore rather than a raw Database so that every
access goes through a keyed repository operation.
"""

from __future__ import annotations

from pathlib import Path

from convoq.infrastructure.database import Database, open_database
from convoq.storage.decisions import DecisionRepository
from convoq.storage.insights import CoordinationInsightRepository, ProactiveAlertRepository
from convoq.storage.meetings import MeetingSuggestionRepository
from convoq.storage.messages import ConversationRepository, MessageRepository
from convoq.storage.models import MessageRecord
from convoq.storage.search import RecentQueryRepository, SearchResultRepository
from convoq.storage.snoozes import SnoozeRepository
from convoq.storage.summaries import ThreadSummaryRepository


class LocalStore:
    def __init__(self, db: Database) -> None:
        self.db = db
        self.messages = MessageRepository(db)
        self.conversations = ConversationRepository(db)
        self.snoozes = SnoozeRepository(db)
        self.summaries = ThreadSummaryRepository(db)
        self.meeting_suggestions = MeetingSuggestionRepository(db)
        self.search_results = SearchResultRepository(db)
        self.recent_queries = RecentQueryRepository(db)
        self.insights = CoordinationInsightRepository(db)
        self.alerts = ProactiveAlertRepository(db)
        self.decisions = DecisionRepository(db)

    @classmethod
    def open(cls, db_path: Path | str | None = None) -> LocalStore:
        """Open (and initialize) the store at `db_path`, ':memory:' or the configured path."""
        return cls(open_database(db_path))

    def message(self, message_id: str) -> MessageRecord | None:
        return self.messages.get(message_id)

    def participant_ids(self, conversation_id: str) -> list[str]:
        conversation = self.conversations.get(conversation_id)
        return list(conversation.participant_ids) if conversation else []

    def close(self) -> None:
        self.db.close()
