"""
Coordination insights and proactive alerts.

The backend writes one insight per conversation and a stream of alerts to the
remote record store. This synchronizer mirrors both into the local store:

- Malformed documents are logged and skipped; they never abort a batch
- An insight overwrites the local copy only when its generatedAt is newer
- Alerts keep their local read/dismissed flags across syncs
- Expired rows are swept after every refresh
"""

from __future__ import annotations

from dataclasses import dataclass

from convoq.ai.errors import UnauthorizedError
from convoq.ai.gateway import RemoteCallGateway
from convoq.ai.models import CoordinationAnalysisResult, RemoteAlertDocument, RemoteInsightDocument
from convoq.auth import AuthSession
from convoq.config import ALERTS_COLLECTION, INSIGHTS_COLLECTION
from convoq.network import NetworkMonitor
from convoq.observability.logging import get_logger
from convoq.observability.telemetry import counter, log_event
from convoq.remote.record_store import RemoteRecordStore, validate_document
from convoq.storage.local import LocalStore
from convoq.storage.models import CoordinationInsightRecord, ProactiveAlert
from convoq.utils.clock import Clock, ensure_utc, utc_now

logger = get_logger(__name__)

ANALYSIS_OPERATION = "triggerCoordinationAnalysis"


@dataclass
class SyncStats:
    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    deduplicated: int = 0
    skipped: int = 0

    @property
    def synced(self) -> int:
        return self.inserted + self.updated


class InsightsSynchronizer:
    def __init__(
        self,
        store: LocalStore,
        record_store: RemoteRecordStore,
        gateway: RemoteCallGateway,
        auth: AuthSession,
        network: NetworkMonitor,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.record_store = record_store
        self.gateway = gateway
        self.auth = auth
        self.network = network
        self.clock = clock
        self.is_processing = False
        self.error_message: str | None = None

    def _require_user(self) -> str:
        user_id = self.auth.current_user_id
        if not user_id:
            raise UnauthorizedError()
        return user_id

    async def sync_insights(self) -> SyncStats:
        """
        Pull the coordinationInsights collection into the local store.

        Raises:
            UnauthorizedError: nobody is signed in
            NetworkError, ServerError: the collection could not be fetched
        """
        self._require_user()
        documents = await self.record_store.fetch_collection(INSIGHTS_COLLECTION)
        stats = SyncStats(fetched=len(documents))

        for document in documents:
            remote = validate_document(RemoteInsightDocument, document, INSIGHTS_COLLECTION)
            if remote is None:
                stats.skipped += 1
                continue

            record = CoordinationInsightRecord(
                remote_id=document.id,
                conversation_id=remote.conversation_id,
                team_id=remote.team_id,
                summary=remote.summary,
                overall_health=remote.overall_health,
                generated_at=ensure_utc(remote.generated_at),
                expires_at=ensure_utc(remote.expires_at),
                payload=remote.details(),
            )

            existing = self.store.insights.get(record.conversation_id)
            if existing is None:
                self.store.insights.upsert(record)
                stats.inserted += 1
            elif record.generated_at > existing.generated_at:
                self.store.insights.upsert(record)
                stats.updated += 1
            else:
                stats.deduplicated += 1

        log_event(
            "sync.insights",
            fetched=stats.fetched,
            synced=stats.synced,
            deduplicated=stats.deduplicated,
            skipped=stats.skipped,
        )
        return stats

    async def sync_alerts(self) -> SyncStats:
        """Pull the proactiveAlerts collection, preserving local read/dismissed flags."""
        self._require_user()
        documents = await self.record_store.fetch_collection(ALERTS_COLLECTION)
        stats = SyncStats(fetched=len(documents))

        for document in documents:
            remote = validate_document(RemoteAlertDocument, document, ALERTS_COLLECTION)
            if remote is None:
                stats.skipped += 1
                continue

            existing = self.store.alerts.get(document.id)
            alert = ProactiveAlert(
                id=document.id,
                conversation_id=remote.conversation_id,
                alert_type=remote.alert_type,
                title=remote.title,
                message=remote.message,
                severity=remote.severity,
                related_insight_id=remote.related_insight_id,
                created_at=ensure_utc(remote.created_at),
                expires_at=ensure_utc(remote.expires_at),
            )

            if existing is None:
                self.store.alerts.insert(alert)
                stats.inserted += 1
                continue

            alert.is_read = existing.is_read
            alert.is_dismissed = existing.is_dismissed
            alert.read_at = existing.read_at
            alert.dismissed_at = existing.dismissed_at
            if alert.model_dump() == existing.model_dump():
                stats.deduplicated += 1
            else:
                self.store.alerts.update_content(alert)
                stats.updated += 1

        log_event(
            "sync.alerts",
            fetched=stats.fetched,
            synced=stats.synced,
            deduplicated=stats.deduplicated,
            skipped=stats.skipped,
        )
        return stats

    def clear_expired_insights(self) -> int:
        deleted = self.store.insights.delete_expired(self.clock())
        if deleted:
            logger.info("Cleared %d expired insights", deleted)
        return deleted

    def clear_expired_alerts(self) -> int:
        deleted = self.store.alerts.delete_expired(self.clock())
        if deleted:
            logger.info("Cleared %d expired alerts", deleted)
        return deleted

    async def trigger_analysis(self) -> CoordinationAnalysisResult:
        """Ask the backend to regenerate insights now."""
        user_id = self._require_user()
        result = await self.gateway.call(
            ANALYSIS_OPERATION, {}, caller_id=user_id, response_model=CoordinationAnalysisResult
        )
        logger.info(
            "Analysis complete: %d conversations, %d insights",
            result.conversations_analyzed,
            result.insights_generated,
        )
        return result

    async def refresh(self, force_analysis: bool = False) -> bool:
        """
        Sync insights and alerts, then sweep expired rows.

        Skipped while offline or signed out. Failures land in error_message;
        nothing is raised. Returns True when the refresh ran to completion.
        """
        if not self.network.is_connected:
            logger.debug("Network offline - skipping insights refresh")
            return False
        if not self.auth.current_user_id:
            logger.debug("No user signed in - skipping insights refresh")
            return False

        self.is_processing = True
        self.error_message = None
        try:
            if force_analysis:
                await self.trigger_analysis()
            await self.sync_insights()
            await self.sync_alerts()
            self.clear_expired_insights()
            self.clear_expired_alerts()
        except Exception as e:
            counter("sync.refresh_failed")
            logger.error("Failed to refresh coordination insights: %s", e)
            self.error_message = f"Failed to refresh coordination insights: {e}"
            return False
        finally:
            self.is_processing = False
        return True

    # --- Local reads ---

    def fetch_insight(self, conversation_id: str) -> CoordinationInsightRecord | None:
        """The conversation's insight, or None when missing or expired."""
        record = self.store.insights.get(conversation_id)
        if record is None or record.is_expired(self.clock()):
            return None
        return record

    def fetch_all_insights(self) -> list[CoordinationInsightRecord]:
        return self.store.insights.list_active(self.clock())

    def fetch_alerts(self, conversation_id: str | None = None) -> list[ProactiveAlert]:
        return self.store.alerts.list_active(self.clock(), conversation_id)

    def mark_alert_read(self, alert_id: str) -> bool:
        return self.store.alerts.mark_read(alert_id, self.clock())

    def dismiss_alert(self, alert_id: str) -> bool:
        return self.store.alerts.dismiss(alert_id, self.clock())

    def reset(self) -> None:
        self.is_processing = False
        self.error_message = None
