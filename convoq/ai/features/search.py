"""
Smart search across conversations.

Results are keyed by the trimmed query. Each successful search replaces the
persisted rows for its query (valid for an hour) and updates the
recent-queries list.
"""

from __future__ import annotations

from datetime import timedelta

from convoq.ai.cache import CacheStore
from convoq.ai.features.base import FeatureContext, FeatureService
from convoq.ai.models import SmartSearchResponse
from convoq.config import SEARCH_DEFAULT_MAX_RESULTS
from convoq.observability.logging import get_logger
from convoq.storage.models import RecentQuery, SearchResultRecord
from convoq.utils.clock import ensure_utc

logger = get_logger(__name__)


class SearchService(FeatureService[list[SearchResultRecord]]):
    name = "search"
    operation = "smartSearch"

    def __init__(self, context: FeatureContext):
        cache: CacheStore[list[SearchResultRecord]] = CacheStore(
            self.name, ttl_seconds=context.settings.search_cache_ttl_seconds, clock=context.clock
        )
        super().__init__(context, cache)

    async def search(
        self,
        query: str,
        max_results: int = SEARCH_DEFAULT_MAX_RESULTS,
        force_refresh: bool = False,
    ) -> list[SearchResultRecord]:
        """
        Search messages.

        Raises:
            ValueError: query is empty or whitespace
        """
        trimmed = query.strip()
        if not trimmed:
            raise ValueError("Search query must not be empty")

        async def fetch(user_id: str) -> list[SearchResultRecord]:
            response = await self.context.gateway.call(
                self.operation,
                {"query": trimmed, "maxResults": max_results},
                caller_id=user_id,
                response_model=SmartSearchResponse,
            )
            return self._to_records(trimmed, response)

        return await self.run(
            trimmed,
            fetch,
            force_refresh=force_refresh,
            load_local=lambda: self.store.search_results.get_results(trimmed, self.clock()) or None,
            save_local=lambda results: self._save(trimmed, results),
        )

    def _to_records(self, query: str, response: SmartSearchResponse) -> list[SearchResultRecord]:
        now = self.clock()
        expires_at = now + timedelta(seconds=self.context.settings.search_local_ttl_seconds)
        return [
            SearchResultRecord(
                query=query,
                conversation_id=hit.conversation_id,
                message_id=hit.message_id,
                snippet=hit.snippet,
                rank=hit.rank,
                timestamp=ensure_utc(hit.timestamp) if hit.timestamp else now,
                expires_at=expires_at,
            )
            for hit in response.hits()
        ]

    def _save(self, query: str, results: list[SearchResultRecord]) -> None:
        self.store.search_results.replace_results(query, results)
        self.store.recent_queries.record(
            RecentQuery(query=query, searched_at=self.clock(), result_count=len(results))
        )

    def recent_queries(self, limit: int = 10) -> list[RecentQuery]:
        return self.store.recent_queries.list_recent(limit)

    def clear_expired_results(self) -> int:
        deleted = self.store.search_results.delete_expired(self.clock())
        if deleted:
            logger.info("Cleared %d expired search results", deleted)
        return deleted

    def clear_cache(self, key: str | None = None) -> None:
        """Drop in-memory results and the persisted search data."""
        super().clear_cache(key.strip() if key is not None else None)
        if key is None:
            self.store.search_results.delete_all()
            self.store.recent_queries.delete_all()

    def reset(self) -> None:
        super().clear_cache()
