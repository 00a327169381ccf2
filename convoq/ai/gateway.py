"""
Gateway for named remote AI operations.

Wraps the transport with:
- Credential refresh per caller when the last refresh has gone stale
- Retry with exponential backoff and jitter on transient failures only
- Response decoding and validation
- Exactly one telemetry event per call
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar, overload

from cachetools import TTLCache
from pydantic import BaseModel, ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from convoq.ai.errors import InvalidResponseError, is_retryable
from convoq.ai.telemetry import TelemetryRecorder
from convoq.auth import AuthSession
from convoq.config import (
    CREDENTIAL_TTL_SECONDS,
    REMOTE_BASE_DELAY_SECONDS,
    REMOTE_JITTER_RATIO,
    REMOTE_MAX_ATTEMPTS,
    REMOTE_MAX_DELAY_SECONDS,
)
from convoq.observability.logging import get_logger
from convoq.observability.telemetry import counter, log_event, time_block
from convoq.remote.transport import FunctionTransport
from convoq.utils.clock import Clock, utc_now

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

Sleep = Callable[[float], Awaitable[None]]

_CREDENTIAL_CACHE_SIZE = 1024


class RemoteCallGateway:
    def __init__(
        self,
        transport: FunctionTransport,
        auth: AuthSession,
        telemetry: TelemetryRecorder,
        max_attempts: int = REMOTE_MAX_ATTEMPTS,
        base_delay: float = REMOTE_BASE_DELAY_SECONDS,
        max_delay: float = REMOTE_MAX_DELAY_SECONDS,
        jitter: float = REMOTE_JITTER_RATIO,
        credential_ttl: float = CREDENTIAL_TTL_SECONDS,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = utc_now,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.transport = transport
        self.auth = auth
        self.telemetry = telemetry
        self.max_attempts = max_attempts
        self.jitter = jitter
        self.sleep = sleep
        self.clock = clock
        self._backoff = wait_exponential(multiplier=base_delay, max=max_delay)
        # caller_id -> True while the last credential refresh is fresh
        self._fresh_credentials: TTLCache[str, bool] = TTLCache(
            maxsize=_CREDENTIAL_CACHE_SIZE,
            ttl=credential_ttl,
            timer=lambda: self.clock().timestamp(),
        )

    def _wait(self, retry_state: RetryCallState) -> float:
        delay = self._backoff(retry_state)
        return max(0.0, delay * random.uniform(1 - self.jitter, 1 + self.jitter))

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        counter("remote.retry_count")
        logger.warning(
            "Remote call attempt %d/%d failed, retrying in %.2fs: %s",
            retry_state.attempt_number,
            self.max_attempts,
            delay,
            error,
        )

    async def _token_for(self, caller_id: str | None) -> str | None:
        """
        Current bearer token, refreshed first when the caller's is stale.

        A failed refresh is logged and the attempt goes ahead with whatever
        token the session still has.
        """
        stale = caller_id is not None and caller_id not in self._fresh_credentials
        try:
            token = await self.auth.get_token(force_refresh=stale)
        except Exception as e:
            counter("remote.credential_refresh_failed")
            logger.warning("Credential refresh failed for caller %s: %s", caller_id, e)
            if not stale:
                return None
            try:
                return await self.auth.get_token(force_refresh=False)
            except Exception as e2:
                logger.warning("No usable credentials for caller %s: %s", caller_id, e2)
                return None

        if stale:
            self._fresh_credentials[caller_id] = True
        return token

    def invalidate_credentials(self, caller_id: str | None = None) -> None:
        """Force a refresh before the next call (for one caller, or everyone)."""
        if caller_id is None:
            self._fresh_credentials.clear()
        else:
            self._fresh_credentials.pop(caller_id, None)

    @staticmethod
    def _decode(operation: str, raw: Any, response_model: type[M] | None) -> Any:
        if not isinstance(raw, dict):
            raise InvalidResponseError(f"{operation} returned {type(raw).__name__}, expected object")
        if response_model is None:
            return raw
        try:
            return response_model.model_validate(raw)
        except ValidationError as e:
            counter(f"ai.{operation}.invalid_response")
            raise InvalidResponseError(f"{operation} response failed validation: {e}") from e

    @overload
    async def call(
        self,
        operation: str,
        payload: dict[str, Any],
        caller_id: str | None = None,
        response_model: None = None,
    ) -> dict[str, Any]: ...

    @overload
    async def call(
        self,
        operation: str,
        payload: dict[str, Any],
        caller_id: str | None = None,
        response_model: type[M] = ...,
    ) -> M: ...

    async def call(
        self,
        operation: str,
        payload: dict[str, Any],
        caller_id: str | None = None,
        response_model: type[M] | None = None,
    ) -> Any:
        """
        Invoke a remote operation.

        Args:
            operation: Remote function name (e.g., "summarizeThreadTask")
            payload: JSON-serializable request body
            caller_id: Signed-in user the call is made for
            response_model: Pydantic model the response must validate against

        Returns:
            The validated model, or the raw JSON object when no model is given

        Raises:
            UnauthorizedError, InvalidResponseError: immediately, never retried
            NetworkError, ServerError: after the last attempt fails

        Side Effects:
            - Sleeps between attempts (injectable)
            - Emits one telemetry event (success or failure)
        """
        start = self.clock()
        attempts = 0
        result: Any = None

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            retry=retry_if_exception(is_retryable),
            before_sleep=self._before_sleep,
            sleep=self.sleep,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    token = await self._token_for(caller_id)
                    with time_block(f"ai.{operation}.latency"):
                        raw = await self.transport.invoke(operation, payload, token)
                    result = self._decode(operation, raw, response_model)
        except Exception as e:
            self.telemetry.record_failure(
                operation, caller_id, start, e, end_time=self.clock(), attempt_count=attempts
            )
            log_event("ai.call_failed", operation=operation, attempts=attempts, error=type(e).__name__)
            raise

        self.telemetry.record_success(
            operation, caller_id, start, end_time=self.clock(), attempt_count=attempts
        )
        return result
