"""
Shared request lifecycle for user-initiated AI features.

Every feature runs the same sequence per key:
1. Require a signed-in user (UnauthorizedError otherwise)
2. Serve from the in-memory cache unless forced (features without a cache skip this)
3. Mark the key loading (clears the previous error)
4. Serve from local persistence where the feature keeps any
5. Call the gateway, then update cache, state and local store
6. On failure record the error on the key and re-raise
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from convoq.ai.cache import CacheStore
from convoq.ai.errors import UnauthorizedError
from convoq.ai.gateway import RemoteCallGateway
from convoq.ai.settings import OrchestratorSettings
from convoq.ai.state import FeatureState
from convoq.ai.telemetry import TelemetryRecorder
from convoq.auth import AuthSession
from convoq.observability.logging import get_logger
from convoq.observability.telemetry import counter
from convoq.storage.local import LocalStore
from convoq.utils.clock import Clock, utc_now

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class FeatureContext:
    """Collaborators shared by every feature of one Orchestrator."""

    store: LocalStore
    auth: AuthSession
    gateway: RemoteCallGateway
    telemetry: TelemetryRecorder
    settings: OrchestratorSettings
    clock: Clock = utc_now


class FeatureService(Generic[T]):
    name: str = "feature"
    operation: str = ""

    def __init__(self, context: FeatureContext, cache: CacheStore[T] | None):
        self.context = context
        self.cache = cache
        self.state: FeatureState[T] = FeatureState(self.name)

    @property
    def store(self) -> LocalStore:
        return self.context.store

    @property
    def clock(self) -> Clock:
        return self.context.clock

    @property
    def is_processing(self) -> bool:
        return self.state.any_loading()

    @property
    def error_message(self) -> str | None:
        return self.state.first_error()

    def require_user(self, key: str) -> str:
        user_id = self.context.auth.current_user_id
        if not user_id:
            error = UnauthorizedError()
            self.state.set_error(key, error.message)
            raise error
        return user_id

    async def run(
        self,
        key: str,
        fetch: Callable[[str], Awaitable[T]],
        *,
        force_refresh: bool = False,
        load_local: Callable[[], T | None] | None = None,
        save_local: Callable[[T], None] | None = None,
    ) -> T:
        """
        Run one request for `key` through the shared lifecycle.

        Args:
            key: Cache/state key (conversation id, trimmed query)
            fetch: Remote call, given the signed-in user id
            force_refresh: Skip cache and local store
            load_local: Returns a still-valid locally persisted value, or None
            save_local: Persists a fresh value; failures are logged only

        Raises:
            UnauthorizedError: nobody is signed in
            AIFeaturesError: whatever the remote call raised
        """
        user_id = self.require_user(key)

        if not force_refresh and self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                now = self.clock()
                self.state.set_error(key, None)
                self.state.set(key, cached)
                self.context.telemetry.record_success(
                    self.operation, user_id, now, end_time=now, cache_hit=True
                )
                return cached

        self.state.set_loading(key, True)
        try:
            if not force_refresh and load_local is not None:
                local = self._load_local(key, load_local)
                if local is not None:
                    counter(f"ai.{self.name}.local_hit")
                    self._remember(key, local)
                    self.state.set(key, local)
                    return local

            try:
                value = await fetch(user_id)
            except Exception as e:
                self.state.set_error(key, str(e))
                raise

            self._remember(key, value)
            self.state.set(key, value)
            if save_local is not None:
                try:
                    save_local(value)
                except Exception as e:
                    counter(f"ai.{self.name}.local_write_failed")
                    logger.warning("Failed to save %s for %s locally: %s", self.name, key, e)
            return value
        finally:
            self.state.set_loading(key, False)

    def _remember(self, key: str, value: T) -> None:
        if self.cache is not None:
            self.cache.set(key, value)

    def _load_local(self, key: str, load_local: Callable[[], T | None]) -> T | None:
        try:
            return load_local()
        except Exception as e:
            logger.warning("Failed to read local %s for %s: %s", self.name, key, e)
            return None

    def clear_cache(self, key: str | None = None) -> None:
        """Drop in-memory results (for one key, or all)."""
        if key is None:
            if self.cache is not None:
                self.cache.clear()
            self.state.clear_all()
        else:
            if self.cache is not None:
                self.cache.remove(key)
            self.state.clear(key)

    def reset(self) -> None:
        self.clear_cache()
