"""Action item extraction (in-memory cache only; the backend owns persistence)."""

from __future__ import annotations

from convoq.ai.cache import CacheStore
from convoq.ai.features.base import FeatureContext, FeatureService
from convoq.ai.models import ActionItemsResponse
from convoq.config import ACTION_ITEMS_DEFAULT_WINDOW_DAYS


class ActionItemsService(FeatureService[ActionItemsResponse]):
    name = "action_items"
    operation = "extractActionItems"

    def __init__(self, context: FeatureContext):
        cache: CacheStore[ActionItemsResponse] = CacheStore(
            self.name,
            ttl_seconds=context.settings.action_items_cache_ttl_seconds,
            clock=context.clock,
        )
        super().__init__(context, cache)

    async def extract_action_items(
        self,
        conversation_id: str,
        window_days: int = ACTION_ITEMS_DEFAULT_WINDOW_DAYS,
        force_refresh: bool = False,
    ) -> ActionItemsResponse:
        async def fetch(user_id: str) -> ActionItemsResponse:
            return await self.context.gateway.call(
                self.operation,
                {"conversationId": conversation_id, "windowDays": window_days},
                caller_id=user_id,
                response_model=ActionItemsResponse,
            )

        return await self.run(conversation_id, fetch, force_refresh=force_refresh)
