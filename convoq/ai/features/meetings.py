"""
Meeting time suggestions.

Suggestions carry their own expiry, which drives both the in-memory cache and
the locally persisted copy. Expired local copies are deleted when found.
"""

from __future__ import annotations

from typing import Any

from convoq.ai.cache import CacheStore
from convoq.ai.features.base import FeatureContext, FeatureService
from convoq.ai.models import MeetingSuggestionsResponse, MeetingTimeSuggestion
from convoq.config import (
    MEETING_ANALYTICS_COLLECTION,
    MEETING_DEFAULT_DURATION_MINUTES,
    MEETING_DEFAULT_PREFERRED_DAYS,
)
from convoq.observability.logging import get_logger
from convoq.observability.telemetry import counter
from convoq.remote.record_store import RemoteRecordStore
from convoq.storage.models import MeetingSuggestionRecord
from convoq.utils.clock import ensure_utc

logger = get_logger(__name__)


class MeetingSuggestionsService(FeatureService[MeetingSuggestionsResponse]):
    name = "meeting_suggestions"
    operation = "suggestMeetingTimes"

    def __init__(self, context: FeatureContext, record_store: RemoteRecordStore):
        cache: CacheStore[MeetingSuggestionsResponse] = CacheStore(
            self.name,
            ttl_seconds=None,
            expiry=lambda response: ensure_utc(response.expires_at),
            clock=context.clock,
        )
        super().__init__(context, cache)
        self.record_store = record_store

    async def suggest_meeting_times(
        self,
        conversation_id: str,
        participant_ids: list[str],
        duration_minutes: int = MEETING_DEFAULT_DURATION_MINUTES,
        preferred_days: int = MEETING_DEFAULT_PREFERRED_DAYS,
        force_refresh: bool = False,
    ) -> MeetingSuggestionsResponse:
        async def fetch(user_id: str) -> MeetingSuggestionsResponse:
            return await self.context.gateway.call(
                self.operation,
                {
                    "conversationId": conversation_id,
                    "participantIds": list(participant_ids),
                    "durationMinutes": duration_minutes,
                    "preferredDays": preferred_days,
                },
                caller_id=user_id,
                response_model=MeetingSuggestionsResponse,
            )

        return await self.run(
            conversation_id,
            fetch,
            force_refresh=force_refresh,
            load_local=lambda: self._valid_local_suggestions(conversation_id),
            save_local=self._save,
        )

    def _valid_local_suggestions(self, conversation_id: str) -> MeetingSuggestionsResponse | None:
        record = self.store.meeting_suggestions.get(conversation_id)
        if record is None:
            return None
        if record.is_expired(self.clock()):
            self.store.meeting_suggestions.delete(conversation_id)
            return None
        return MeetingSuggestionsResponse(
            suggestions=[MeetingTimeSuggestion.model_validate(s) for s in record.suggestions],
            conversation_id=conversation_id,
            duration_minutes=record.duration_minutes,
            participant_count=record.participant_count,
            generated_at=record.generated_at,
            expires_at=record.expires_at,
        )

    def _save(self, response: MeetingSuggestionsResponse) -> None:
        self.store.meeting_suggestions.upsert(
            MeetingSuggestionRecord(
                conversation_id=response.conversation_id,
                suggestions=[s.to_document() for s in response.suggestions],
                duration_minutes=response.duration_minutes,
                participant_count=response.participant_count,
                generated_at=ensure_utc(response.generated_at),
                expires_at=ensure_utc(response.expires_at),
            )
        )

    async def track_interaction(
        self,
        conversation_id: str,
        action: str,
        suggestion_index: int,
        suggestion_score: float,
    ) -> bool:
        """
        Record what the user did with a suggestion ("copy", "share", "accept", ...).

        Returns False when the analytics write failed; never raises.
        """
        data: dict[str, Any] = {
            "conversationId": conversation_id,
            "action": action,
            "suggestionIndex": suggestion_index,
            "suggestionScore": suggestion_score,
            "timestamp": self.clock().isoformat(),
        }
        document_id = f"{conversation_id}-{action}-{int(self.clock().timestamp() * 1000)}"
        try:
            await self.record_store.add_document(MEETING_ANALYTICS_COLLECTION, document_id, data)
        except Exception as e:
            counter("ai.meeting_suggestions.analytics_failed")
            logger.warning("Failed to track meeting suggestion interaction (non-fatal): %s", e)
            return False
        counter(f"ai.meeting_suggestions.interaction.{action}")
        return True

    def clear_expired_suggestions(self) -> int:
        deleted = self.store.meeting_suggestions.delete_expired(self.clock())
        if deleted:
            logger.info("Cleared %d expired meeting suggestions", deleted)
        return deleted
