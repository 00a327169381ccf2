"""
Telemetry for remote AI calls.

Each call outcome becomes one TelemetryEvent handed to a sink in the
background. Writing telemetry never blocks the caller and never raises into
it: sink failures are logged and counted.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from convoq.config import TELEMETRY_COLLECTION
from convoq.observability.logging import get_logger
from convoq.observability.telemetry import counter, log_event
from convoq.remote.record_store import RemoteRecordStore
from convoq.utils.clock import Clock, utc_now

logger = get_logger(__name__)


class TelemetryEvent(BaseModel):
    """Outcome of one remote call (or one cache hit standing in for it)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str | None = None
    function_name: str
    start_time: datetime
    end_time: datetime
    duration_ms: int
    success: bool
    attempt_count: int = 1
    cache_hit: bool = False
    error_type: str | None = None
    error_message: str | None = None

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class TelemetrySink(Protocol):
    async def write(self, event: TelemetryEvent) -> None: ...


class LoggingTelemetrySink:
    """Writes events to the structured event log only."""

    async def write(self, event: TelemetryEvent) -> None:
        log_event(
            "ai.call",
            function=event.function_name,
            success=event.success,
            duration_ms=event.duration_ms,
            attempts=event.attempt_count,
            cache_hit=event.cache_hit,
            error_type=event.error_type,
        )


class RecordStoreTelemetrySink:
    """Appends events to the remote `ai_telemetry` collection."""

    def __init__(self, record_store: RemoteRecordStore, collection: str = TELEMETRY_COLLECTION):
        self.record_store = record_store
        self.collection = collection

    async def write(self, event: TelemetryEvent) -> None:
        await self.record_store.add_document(self.collection, event.event_id, event.to_document())


def _duration_ms(start: datetime, end: datetime) -> int:
    return max(0, int((end - start).total_seconds() * 1000))


class TelemetryRecorder:
    def __init__(self, sink: TelemetrySink, enabled: bool = True, clock: Clock = utc_now):
        self.sink = sink
        self.enabled = enabled
        self.clock = clock
        self._pending: set[asyncio.Task[None]] = set()

    def record_success(
        self,
        function_name: str,
        user_id: str | None,
        start_time: datetime,
        end_time: datetime | None = None,
        attempt_count: int = 1,
        cache_hit: bool = False,
    ) -> TelemetryEvent | None:
        end_time = end_time or self.clock()
        counter(f"ai.{function_name}.cache_hit" if cache_hit else f"ai.{function_name}.success")
        event = TelemetryEvent(
            user_id=user_id,
            function_name=function_name,
            start_time=start_time,
            end_time=end_time,
            duration_ms=_duration_ms(start_time, end_time),
            success=True,
            attempt_count=attempt_count,
            cache_hit=cache_hit,
        )
        return self._emit(event)

    def record_failure(
        self,
        function_name: str,
        user_id: str | None,
        start_time: datetime,
        error: BaseException,
        end_time: datetime | None = None,
        attempt_count: int = 1,
    ) -> TelemetryEvent | None:
        end_time = end_time or self.clock()
        counter(f"ai.{function_name}.failure")
        event = TelemetryEvent(
            user_id=user_id,
            function_name=function_name,
            start_time=start_time,
            end_time=end_time,
            duration_ms=_duration_ms(start_time, end_time),
            success=False,
            attempt_count=attempt_count,
            error_type=getattr(error, "code", None) or type(error).__name__,
            error_message=str(error),
        )
        return self._emit(event)

    def _emit(self, event: TelemetryEvent) -> TelemetryEvent | None:
        """
        Hand the event to the sink without awaiting it.

        Side Effects:
            - Schedules a task on the running loop (kept in _pending until done)
        """
        if not self.enabled:
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, dropping telemetry for %s", event.function_name)
            counter("telemetry.dropped")
            return event

        task = loop.create_task(self._write(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return event

    async def _write(self, event: TelemetryEvent) -> None:
        try:
            await self.sink.write(event)
        except Exception as e:
            counter("telemetry.write_failed")
            logger.warning("Failed to write telemetry for %s: %s", event.function_name, e)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def flush(self) -> None:
        """Wait for every in-flight sink write."""
        if self._pending:
            await asyncio.gather(*list(self._pending))
