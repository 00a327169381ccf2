"""
Scheduling intent detection and meeting-suggestion auto-prefetch.

On every message mutation the coordinator decides whether the conversation
has just shown a qualifying scheduling intent and, if so, prefetches meeting
suggestions once. Per conversation:

    IDLE -> INTENT_DETECTED -> PREFETCHING -> PREFETCHED

with two orthogonal modifiers: snoozed (persisted, user-controlled) and
queued (waiting for connectivity). Markers are set synchronously before the
remote call, so two events for the same conversation cannot both prefetch.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from convoq.ai.errors import NetworkError
from convoq.ai.features.meetings import MeetingSuggestionsService
from convoq.ai.settings import OrchestratorSettings
from convoq.network import NetworkMonitor
from convoq.observability.logging import get_logger
from convoq.observability.telemetry import counter, log_event
from convoq.storage.local import LocalStore
from convoq.storage.models import SnoozeRecord
from convoq.utils.clock import Clock, utc_now

logger = get_logger(__name__)


class PrefetchPhase(str, Enum):
    IDLE = "idle"
    INTENT_DETECTED = "intent_detected"
    PREFETCHING = "prefetching"
    PREFETCHED = "prefetched"


class MutationOutcome(str, Enum):
    """What a single mutation event led to."""

    SNOOZED = "snoozed"
    DEBOUNCED = "debounced"
    ALREADY_PREFETCHED = "already_prefetched"
    NO_INTENT = "no_intent"
    TOO_FEW_PARTICIPANTS = "too_few_participants"
    QUEUED = "queued"
    PREFETCHED = "prefetched"
    FAILED = "failed"


@dataclass(frozen=True)
class PendingRetryItem:
    conversation_id: str
    message_id: str
    enqueued_at: datetime


class SchedulingCoordinator:
    def __init__(
        self,
        store: LocalStore,
        meetings: MeetingSuggestionsService,
        network: NetworkMonitor,
        settings: OrchestratorSettings | None = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.meetings = meetings
        self.network = network
        self.settings = settings or OrchestratorSettings()
        self.clock = clock

        # Observable per-conversation state
        self.intent_detected: dict[str, bool] = {}
        self.intent_confidence: dict[str, float] = {}

        self._phase: dict[str, PrefetchPhase] = {}
        self._last_prefetch_at: dict[str, datetime] = {}
        self._pending: dict[tuple[str, str], PendingRetryItem] = {}

    # --- State inspection ---

    def phase(self, conversation_id: str) -> PrefetchPhase:
        phase = self._phase.get(conversation_id)
        if phase is not None:
            return phase
        if self.intent_detected.get(conversation_id):
            return PrefetchPhase.INTENT_DETECTED
        return PrefetchPhase.IDLE

    def pending_items(self) -> list[PendingRetryItem]:
        return sorted(self._pending.values(), key=lambda item: item.enqueued_at)

    @property
    def is_processing(self) -> bool:
        return any(phase == PrefetchPhase.PREFETCHING for phase in self._phase.values())

    # --- Mutation handling ---

    async def on_message_mutation(self, conversation_id: str, message_id: str) -> MutationOutcome:
        """
        React to a message being created or updated.

        Returns:
            MutationOutcome describing which gate stopped the event, or how the
            prefetch ended

        Side Effects:
            - May delete an expired snooze row
            - May call suggestMeetingTimes through the meetings feature
            - May enqueue a pending retry while offline
        """
        outcome = await self._evaluate(conversation_id, message_id)
        counter(f"scheduling.{outcome.value}")
        return outcome

    async def _evaluate(self, conversation_id: str, message_id: str) -> MutationOutcome:
        if self.is_snoozed(conversation_id):
            logger.debug("Scheduling suggestions snoozed for %s", conversation_id)
            return MutationOutcome.SNOOZED

        now = self.clock()
        last = self._last_prefetch_at.get(conversation_id)
        if last is not None and now - last < timedelta(
            seconds=self.settings.scheduling_debounce_seconds
        ):
            logger.debug(
                "Debouncing prefetch for %s (last: %ds ago)",
                conversation_id,
                (now - last).total_seconds(),
            )
            return MutationOutcome.DEBOUNCED

        if self._phase.get(conversation_id) in (PrefetchPhase.PREFETCHING, PrefetchPhase.PREFETCHED):
            return MutationOutcome.ALREADY_PREFETCHED

        message = self.store.message(message_id)
        if (
            message is None
            or not message.has_scheduling_intent
            or message.intent_confidence is None
            or message.intent_confidence < self.settings.scheduling_confidence_threshold
        ):
            return MutationOutcome.NO_INTENT

        self.intent_detected[conversation_id] = True
        self.intent_confidence[conversation_id] = message.intent_confidence
        logger.info(
            "Scheduling intent detected in %s (confidence: %.2f)",
            conversation_id,
            message.intent_confidence,
        )

        humans = self._human_participants(conversation_id)
        if len(humans) < self.settings.scheduling_min_human_participants:
            logger.debug(
                "Skipping prefetch for %s - not enough human participants (%d)",
                conversation_id,
                len(humans),
            )
            return MutationOutcome.TOO_FEW_PARTICIPANTS

        if not self.network.is_connected:
            self._enqueue(conversation_id, message_id)
            return MutationOutcome.QUEUED

        # Markers may have been set by another event while the store was read
        if self._phase.get(conversation_id) in (PrefetchPhase.PREFETCHING, PrefetchPhase.PREFETCHED):
            return MutationOutcome.ALREADY_PREFETCHED
        self._phase[conversation_id] = PrefetchPhase.PREFETCHING
        self._last_prefetch_at[conversation_id] = now

        return await self._prefetch(conversation_id, message_id, humans)

    def _human_participants(self, conversation_id: str) -> list[str]:
        prefixes = tuple(self.settings.synthetic_participant_prefixes)
        return [
            participant
            for participant in self.store.participant_ids(conversation_id)
            if not participant.startswith(prefixes)
        ]

    async def _prefetch(
        self, conversation_id: str, message_id: str, participant_ids: list[str]
    ) -> MutationOutcome:
        logger.info("Auto-prefetching meeting suggestions for %s", conversation_id)
        try:
            await self.meetings.suggest_meeting_times(
                conversation_id,
                participant_ids,
                duration_minutes=self.settings.meeting_duration_minutes,
                preferred_days=self.settings.meeting_preferred_days,
                force_refresh=False,
            )
        except Exception as e:
            logger.warning("Failed to prefetch meeting suggestions for %s: %s", conversation_id, e)
            self._phase.pop(conversation_id, None)
            self._last_prefetch_at.pop(conversation_id, None)
            if isinstance(e, NetworkError) or not self.network.is_connected:
                self._enqueue(conversation_id, message_id)
                return MutationOutcome.QUEUED
            return MutationOutcome.FAILED

        self._phase[conversation_id] = PrefetchPhase.PREFETCHED
        log_event("scheduling.prefetched", conversation_id=conversation_id)
        return MutationOutcome.PREFETCHED

    def _enqueue(self, conversation_id: str, message_id: str) -> None:
        key = (conversation_id, message_id)
        if key in self._pending:
            return
        self._pending[key] = PendingRetryItem(
            conversation_id=conversation_id, message_id=message_id, enqueued_at=self.clock()
        )
        logger.info("Network offline - queued scheduling suggestion for %s", conversation_id)

    async def drain_pending(self) -> int:
        """
        Re-run every queued mutation once connectivity is back.

        Items that have gone stale (snoozed, already prefetched, debounced) are
        skipped by the normal gates. Returns the number of items taken.
        """
        if not self.network.is_connected:
            logger.debug("Network still offline - cannot process pending suggestions")
            return 0
        if not self._pending:
            return 0

        pending = self.pending_items()
        self._pending.clear()
        logger.info("Processing %d pending scheduling suggestions", len(pending))

        for item in pending:
            await self.on_message_mutation(item.conversation_id, item.message_id)
        return len(pending)

    # --- Snooze management ---

    def snooze(self, conversation_id: str, duration_seconds: float | None = None) -> SnoozeRecord:
        """Suppress auto-prefetch for the conversation (default: one hour)."""
        if duration_seconds is None:
            duration_seconds = self.settings.default_snooze_seconds
        now = self.clock()
        record = SnoozeRecord(
            conversation_id=conversation_id,
            snoozed_until=now + timedelta(seconds=duration_seconds),
            updated_at=now,
        )
        self.store.snoozes.upsert(record)
        logger.info(
            "Snoozed scheduling suggestions for %s until %s", conversation_id, record.snoozed_until
        )
        return record

    def is_snoozed(self, conversation_id: str) -> bool:
        record = self.store.snoozes.get(conversation_id)
        if record is None:
            return False
        if not record.is_active(self.clock()):
            self.store.snoozes.delete(conversation_id)
            return False
        return True

    def clear_snooze(self, conversation_id: str) -> bool:
        return self.store.snoozes.delete(conversation_id)

    def clear_expired_snoozes(self) -> int:
        deleted = self.store.snoozes.delete_expired(self.clock())
        if deleted:
            logger.info("Cleared %d expired snoozes", deleted)
        return deleted

    def reset(self) -> None:
        """Forget all in-memory flags, debounce timestamps and the queue."""
        self.intent_detected.clear()
        self.intent_confidence.clear()
        self._phase.clear()
        self._last_prefetch_at.clear()
        self._pending.clear()
