"""
Decision tracking.

The backend extracts decisions from a conversation and writes them to
conversations/{id}/decisions. recordDecisions runs on every request (there is
no in-memory cache); a run that persisted anything is followed by a sync of
the conversation's decisions into the local store:

- Malformed documents are logged and skipped
- A decision overwrites the local copy only when its updatedAt is newer
- Local decisions whose remote document is gone are deleted

Follow-up status edits and deletes go to the record store first, then to the
local copy.
"""

from __future__ import annotations

from typing import get_args

from convoq.ai.errors import AIFeaturesError
from convoq.ai.features.base import FeatureContext, FeatureService
from convoq.ai.features.insights import SyncStats
from convoq.ai.models import RemoteDecisionDocument, TrackedDecisionsResponse
from convoq.config import DECISIONS_COLLECTION_TEMPLATE, DECISIONS_DEFAULT_WINDOW_DAYS
from convoq.observability.logging import get_logger
from convoq.observability.telemetry import counter, log_event
from convoq.remote.record_store import RemoteRecordStore, validate_document
from convoq.storage.models import DecisionRecord, FollowUpStatus
from convoq.utils.clock import ensure_utc, to_db_timestamp

logger = get_logger(__name__)


def decisions_collection(conversation_id: str) -> str:
    return DECISIONS_COLLECTION_TEMPLATE.format(conversation_id=conversation_id)


class DecisionTrackingService(FeatureService[TrackedDecisionsResponse]):
    name = "decisions"
    operation = "recordDecisions"

    def __init__(self, context: FeatureContext, record_store: RemoteRecordStore):
        super().__init__(context, cache=None)
        self.record_store = record_store

    async def record_decisions(
        self,
        conversation_id: str,
        window_days: int = DECISIONS_DEFAULT_WINDOW_DAYS,
    ) -> TrackedDecisionsResponse:
        async def fetch(user_id: str) -> TrackedDecisionsResponse:
            return await self.context.gateway.call(
                self.operation,
                {"conversationId": conversation_id, "windowDays": window_days},
                caller_id=user_id,
                response_model=TrackedDecisionsResponse,
            )

        result = await self.run(conversation_id, fetch)
        if result.persisted:
            try:
                await self.sync_decisions(conversation_id)
            except AIFeaturesError as e:
                counter("sync.decisions.failed")
                logger.warning("Decisions recorded but sync failed for %s: %s", conversation_id, e)
        return result

    async def sync_decisions(self, conversation_id: str) -> SyncStats:
        """
        Pull the conversation's decisions into the local store.

        Raises:
            UnauthorizedError: nobody is signed in
            NetworkError, ServerError: the collection could not be fetched
        """
        self.require_user(conversation_id)
        documents = await self.record_store.fetch_collection(decisions_collection(conversation_id))
        stats = SyncStats(fetched=len(documents))

        seen: list[str] = []
        for document in documents:
            seen.append(document.id)
            remote = validate_document(RemoteDecisionDocument, document, self.name)
            if remote is None:
                stats.skipped += 1
                continue

            updated_at = ensure_utc(remote.updated_at)
            record = DecisionRecord(
                id=document.id,
                conversation_id=conversation_id,
                decision_text=remote.decision_text,
                context_summary=remote.context_summary,
                participant_ids=remote.participant_ids,
                decided_at=ensure_utc(remote.decided_at),
                follow_up_status=remote.follow_up_status,
                confidence_score=remote.confidence_score,
                reminder_date=ensure_utc(remote.reminder_date) if remote.reminder_date else None,
                created_at=ensure_utc(remote.created_at) if remote.created_at else updated_at,
                updated_at=updated_at,
            )

            existing = self.store.decisions.get(record.id)
            if existing is None:
                self.store.decisions.upsert(record)
                stats.inserted += 1
            elif record.updated_at > existing.updated_at:
                self.store.decisions.upsert(record)
                stats.updated += 1
            else:
                stats.deduplicated += 1

        removed = self.store.decisions.delete_missing(conversation_id, seen)
        log_event(
            "sync.decisions",
            conversation_id=conversation_id,
            fetched=stats.fetched,
            synced=stats.synced,
            deduplicated=stats.deduplicated,
            skipped=stats.skipped,
            removed=removed,
        )
        return stats

    # --- Local reads ---

    def fetch_decisions(self, conversation_id: str) -> list[DecisionRecord]:
        return self.store.decisions.list_for_conversation(conversation_id)

    def fetch_all_decisions(self) -> list[DecisionRecord]:
        return self.store.decisions.list_all()

    # --- Edits ---

    async def update_decision_status(
        self, conversation_id: str, decision_id: str, status: FollowUpStatus
    ) -> bool:
        """
        Set a decision's follow-up status remotely, then locally.

        Returns:
            True if a local copy was updated
        """
        if status not in get_args(FollowUpStatus):
            raise ValueError(f"Unknown follow-up status: {status}")
        self.require_user(conversation_id)
        now = self.clock()
        await self.record_store.update_document(
            decisions_collection(conversation_id),
            decision_id,
            {"followUpStatus": status, "updatedAt": to_db_timestamp(now)},
        )
        counter("ai.decisions.status_updated")
        return self.store.decisions.update_status(decision_id, status, now)

    async def delete_decision(self, conversation_id: str, decision_id: str) -> bool:
        """Delete a decision remotely, then locally. Returns True if a local copy existed."""
        self.require_user(conversation_id)
        await self.record_store.delete_document(decisions_collection(conversation_id), decision_id)
        counter("ai.decisions.deleted")
        return self.store.decisions.delete(decision_id)
