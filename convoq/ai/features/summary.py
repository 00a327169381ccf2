"""
Thread summaries.

Summaries are cached in memory for an hour and persisted locally for a day.
A persisted summary younger than the reuse window is served without a
remote call.
"""

from __future__ import annotations

from datetime import timedelta

from convoq.ai.cache import CacheStore
from convoq.ai.features.base import FeatureContext, FeatureService
from convoq.ai.models import ThreadSummaryResponse
from convoq.config import SUMMARY_DEFAULT_MESSAGE_LIMIT
from convoq.observability.logging import get_logger
from convoq.storage.models import ThreadSummaryRecord
from convoq.utils.clock import ensure_utc

logger = get_logger(__name__)


class SummaryService(FeatureService[ThreadSummaryResponse]):
    name = "summary"
    operation = "summarizeThreadTask"

    def __init__(self, context: FeatureContext):
        cache: CacheStore[ThreadSummaryResponse] = CacheStore(
            self.name, ttl_seconds=context.settings.summary_cache_ttl_seconds, clock=context.clock
        )
        super().__init__(context, cache)

    async def summarize_thread(
        self,
        conversation_id: str,
        message_limit: int = SUMMARY_DEFAULT_MESSAGE_LIMIT,
        save_locally: bool = True,
        force_refresh: bool = False,
    ) -> ThreadSummaryResponse:
        """
        Summarize a conversation.

        Args:
            conversation_id: Conversation to summarize
            message_limit: Most recent messages the backend should read
            save_locally: Persist the summary to the local store
            force_refresh: Ignore cached and locally persisted summaries
        """

        async def fetch(user_id: str) -> ThreadSummaryResponse:
            return await self.context.gateway.call(
                self.operation,
                {"conversationId": conversation_id, "messageLimit": message_limit},
                caller_id=user_id,
                response_model=ThreadSummaryResponse,
            )

        return await self.run(
            conversation_id,
            fetch,
            force_refresh=force_refresh,
            load_local=lambda: self._recent_local_summary(conversation_id),
            save_local=self._save if save_locally else None,
        )

    def _recent_local_summary(self, conversation_id: str) -> ThreadSummaryResponse | None:
        record = self.store.summaries.get(conversation_id)
        if record is None:
            return None
        age = self.clock() - record.generated_at
        if age >= timedelta(seconds=self.context.settings.summary_local_reuse_seconds):
            return None
        return ThreadSummaryResponse(
            summary=record.summary,
            key_points=record.key_points,
            conversation_id=record.conversation_id,
            timestamp=record.generated_at,
            message_count=record.message_count,
        )

    def _save(self, response: ThreadSummaryResponse) -> None:
        now = self.clock()
        self.store.summaries.upsert(
            ThreadSummaryRecord(
                conversation_id=response.conversation_id,
                summary=response.summary,
                key_points=response.key_points,
                generated_at=ensure_utc(response.timestamp),
                message_count=response.message_count,
                expires_at=now + timedelta(seconds=self.context.settings.summary_local_ttl_seconds),
            )
        )

    def fetch_thread_summary(self, conversation_id: str) -> ThreadSummaryRecord | None:
        """Locally persisted summary, expired or not."""
        return self.store.summaries.get(conversation_id)

    def delete_thread_summary(self, conversation_id: str) -> bool:
        return self.store.summaries.delete(conversation_id)

    def clear_expired_summaries(self) -> int:
        deleted = self.store.summaries.delete_expired(self.clock())
        if deleted:
            logger.info("Cleared %d expired thread summaries", deleted)
        return deleted
