"""
Orchestrator - composition root and lifecycle hooks for AI features.

The host creates one Orchestrator, calls configure() once its collaborators
exist, then forwards lifecycle events (sign-in/out, message mutations,
connectivity changes). Nothing here is process-global: every cache, state
tracker and gateway belongs to the instance.

Hooks never raise into the host except for NotConfiguredError; failures are
logged and surfaced through last_error / error_message.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from convoq.ai.errors import NotConfiguredError
from convoq.ai.features.action_items import ActionItemsService
from convoq.ai.features.base import FeatureContext, FeatureService
from convoq.ai.features.decisions import DecisionTrackingService
from convoq.ai.features.insights import InsightsSynchronizer
from convoq.ai.features.meetings import MeetingSuggestionsService
from convoq.ai.features.scheduling import SchedulingCoordinator
from convoq.ai.features.search import SearchService
from convoq.ai.features.summary import SummaryService
from convoq.ai.gateway import RemoteCallGateway, Sleep
from convoq.ai.models import AIFeedback
from convoq.ai.settings import OrchestratorSettings
from convoq.ai.telemetry import RecordStoreTelemetrySink, TelemetryRecorder, TelemetrySink
from convoq.auth import AuthSession
from convoq.config import FEEDBACK_COLLECTION
from convoq.network import NetworkMonitor
from convoq.observability.logging import get_logger
from convoq.observability.telemetry import counter, log_event
from convoq.remote.record_store import RemoteRecordStore
from convoq.remote.transport import FunctionTransport
from convoq.storage.local import LocalStore
from convoq.utils.clock import Clock, utc_now

logger = get_logger(__name__)


class Orchestrator:
    def __init__(self) -> None:
        self._configured = False
        self.last_error: str | None = None
        self._remove_listener: Callable[[], None] | None = None
        self._background: set[asyncio.Task[None]] = set()

    def configure(
        self,
        store: LocalStore,
        auth: AuthSession,
        network: NetworkMonitor,
        transport: FunctionTransport,
        record_store: RemoteRecordStore,
        settings: OrchestratorSettings | None = None,
        telemetry_sink: TelemetrySink | None = None,
        clock: Clock = utc_now,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """
        Wire every feature to its collaborators.

        Calling configure() again replaces all features (and their in-memory
        state) and moves the connectivity subscription to the new monitor.

        Side Effects:
            - Subscribes to network so a restored connection schedules
              on_network_restored()
        """
        self.settings = settings or OrchestratorSettings()
        self.store = store
        self.auth = auth
        self.network = network
        self.record_store = record_store
        self.clock = clock

        self.telemetry = TelemetryRecorder(
            telemetry_sink or RecordStoreTelemetrySink(record_store),
            enabled=self.settings.telemetry_enabled,
            clock=clock,
        )
        self.gateway = RemoteCallGateway(
            transport,
            auth,
            self.telemetry,
            max_attempts=self.settings.max_attempts,
            base_delay=self.settings.base_delay_seconds,
            max_delay=self.settings.max_delay_seconds,
            jitter=self.settings.jitter_ratio,
            credential_ttl=self.settings.credential_ttl_seconds,
            sleep=sleep,
            clock=clock,
        )

        context = FeatureContext(
            store=store,
            auth=auth,
            gateway=self.gateway,
            telemetry=self.telemetry,
            settings=self.settings,
            clock=clock,
        )
        self.summary = SummaryService(context)
        self.action_items = ActionItemsService(context)
        self.search = SearchService(context)
        self.meetings = MeetingSuggestionsService(context, record_store)
        self.decisions = DecisionTrackingService(context, record_store)
        self.scheduling = SchedulingCoordinator(
            store, self.meetings, network, settings=self.settings, clock=clock
        )
        self.insights = InsightsSynchronizer(
            store, record_store, self.gateway, auth, network, clock=clock
        )

        if self._remove_listener is not None:
            self._remove_listener()
        self._remove_listener = network.add_listener(self._on_connectivity_changed)

        self.last_error = None
        self._configured = True
        log_event("orchestrator.configured", telemetry=self.settings.telemetry_enabled)

    @property
    def is_configured(self) -> bool:
        return self._configured

    def _require_configured(self) -> None:
        if not self._configured:
            raise NotConfiguredError()

    @property
    def features(self) -> list[FeatureService]:
        self._require_configured()
        return [self.summary, self.action_items, self.search, self.meetings, self.decisions]

    def _record_error(self, hook: str, error: Exception) -> None:
        counter(f"orchestrator.{hook}.failed")
        logger.error("%s failed: %s", hook, error, exc_info=True)
        self.last_error = f"{hook} failed: {error}"

    # --- Lifecycle hooks ---

    async def on_message_mutation(self, conversation_id: str, message_id: str) -> None:
        """Fan a message create/update out to every mutation observer."""
        self._require_configured()
        try:
            await self.scheduling.on_message_mutation(conversation_id, message_id)
        except Exception as e:
            self._record_error("message_mutation", e)

    async def on_sign_in(self) -> None:
        self._require_configured()
        try:
            await self.insights.refresh()
        except Exception as e:
            self._record_error("sign_in", e)

    def on_sign_out(self) -> None:
        """Drop every per-user in-memory state."""
        self._require_configured()
        for feature in self.features:
            feature.reset()
        self.scheduling.reset()
        self.insights.reset()
        self.gateway.invalidate_credentials()
        self.last_error = None
        log_event("orchestrator.signed_out")

    async def on_network_restored(self) -> None:
        """Drain queued scheduling prefetches, then refresh insights."""
        self._require_configured()
        try:
            await self.scheduling.drain_pending()
            await self.insights.refresh()
        except Exception as e:
            self._record_error("network_restored", e)

    def _on_connectivity_changed(self, connected: bool) -> None:
        if not connected:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Network restored outside an event loop; call on_network_restored()")
            return
        task = loop.create_task(self.on_network_restored())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # --- Cache management ---

    def clear_caches(self) -> None:
        """Clear every feature's in-memory cache and state, plus scheduling flags."""
        self._require_configured()
        for feature in self.features:
            feature.reset()
        self.scheduling.reset()

    def clear_expired_cached_data(self) -> dict[str, int]:
        """
        Sweep every persistent TTL store and in-memory cache.

        Returns:
            Deleted row/entry count per store. A failing sweep is logged,
            recorded in last_error, and skipped; the others still run.
        """
        self._require_configured()
        sweeps: dict[str, Callable[[], int]] = {
            "summaries": self.summary.clear_expired_summaries,
            "search_results": self.search.clear_expired_results,
            "meeting_suggestions": self.meetings.clear_expired_suggestions,
            "snoozes": self.scheduling.clear_expired_snoozes,
            "insights": self.insights.clear_expired_insights,
            "alerts": self.insights.clear_expired_alerts,
            "memory": lambda: sum(
                feature.cache.clear_expired()
                for feature in self.features
                if feature.cache is not None
            ),
        }

        results: dict[str, int] = {}
        for name, sweep in sweeps.items():
            try:
                results[name] = sweep()
            except Exception as e:
                self._record_error(f"clear_expired.{name}", e)
        return results

    # --- Insights & feedback ---

    async def refresh_insights(self, force_analysis: bool = False) -> bool:
        self._require_configured()
        return await self.insights.refresh(force_analysis=force_analysis)

    async def submit_feedback(self, feedback: AIFeedback) -> None:
        """
        Store user feedback on AI output in the ai_feedback collection.

        Raises:
            AIFeaturesError: the record store write failed
        """
        self._require_configured()
        await self.record_store.add_document(
            FEEDBACK_COLLECTION, feedback.feedback_id, feedback.to_document()
        )
        logger.info(
            "Submitted AI feedback: %s for conversation %s",
            feedback.feature_type,
            feedback.conversation_id,
        )

    # --- Aggregate state ---

    @property
    def is_processing(self) -> bool:
        if not self._configured:
            return False
        return (
            any(feature.is_processing for feature in self.features)
            or self.scheduling.is_processing
            or self.insights.is_processing
        )

    @property
    def error_message(self) -> str | None:
        if self.last_error:
            return self.last_error
        if not self._configured:
            return None
        for feature in self.features:
            if feature.error_message:
                return feature.error_message
        return self.insights.error_message

    async def aclose(self) -> None:
        """Wait for background hooks and pending telemetry writes."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
        if self._configured:
            await self.telemetry.flush()
