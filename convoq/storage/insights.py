"""
Coordination insight and proactive alert repositories.

Insights are keyed by conversation (one mirror per conversation); alerts are
keyed by their remote id.
"""

from __future__ import annotations

from datetime import datetime

from convoq.infrastructure.database import Database, retry_on_db_lock
from convoq.storage import BaseRepository
from convoq.storage.models import CoordinationInsightRecord, ProactiveAlert
from convoq.utils.clock import to_db_timestamp


class CoordinationInsightRepository(BaseRepository):
    def __init__(self, db: Database) -> None:
        super().__init__(db, "coordination_insights")

    @retry_on_db_lock()
    def upsert(self, record: CoordinationInsightRecord) -> None:
        self.execute(
            """
            INSERT OR REPLACE INTO coordination_insights (
                conversation_id, remote_id, team_id, summary, overall_health,
                generated_at, expires_at, payload
            ) VALUES (:conversation_id, :remote_id, :team_id, :summary, :overall_health,
                      :generated_at, :expires_at, :payload)
            """,
            record.to_db_dict(),
        )

    def get(self, conversation_id: str) -> CoordinationInsightRecord | None:
        row = self.query_one(
            "SELECT * FROM coordination_insights WHERE conversation_id = ?", (conversation_id,)
        )
        return CoordinationInsightRecord.from_db_row(row) if row else None

    def list_active(self, now: datetime) -> list[CoordinationInsightRecord]:
        rows = self.query_all(
            """
            SELECT * FROM coordination_insights
            WHERE expires_at > ?
            ORDER BY generated_at DESC
            """,
            (to_db_timestamp(now),),
        )
        return [CoordinationInsightRecord.from_db_row(row) for row in rows]

    @retry_on_db_lock()
    def delete_expired(self, now: datetime) -> int:
        return self.execute(
            "DELETE FROM coordination_insights WHERE expires_at < ?", (to_db_timestamp(now),)
        )


class ProactiveAlertRepository(BaseRepository):
    def __init__(self, db: Database) -> None:
        super().__init__(db, "proactive_alerts")

    @retry_on_db_lock()
    def insert(self, alert: ProactiveAlert) -> None:
        self.execute(
            """
            INSERT INTO proactive_alerts (
                id, conversation_id, alert_type, title, message, severity,
                related_insight_id, is_read, is_dismissed, created_at, expires_at,
                read_at, dismissed_at
            ) VALUES (:id, :conversation_id, :alert_type, :title, :message, :severity,
                      :related_insight_id, :is_read, :is_dismissed, :created_at, :expires_at,
                      :read_at, :dismissed_at)
            """,
            alert.to_db_dict(),
        )

    @retry_on_db_lock()
    def update_content(self, alert: ProactiveAlert) -> None:
        """Overwrite remote-owned fields, leaving read/dismissed state untouched."""
        data = alert.to_db_dict()
        self.execute(
            """
            UPDATE proactive_alerts SET
                conversation_id = ?, alert_type = ?, title = ?, message = ?,
                severity = ?, related_insight_id = ?, created_at = ?, expires_at = ?
            WHERE id = ?
            """,
            (
                data["conversation_id"],
                data["alert_type"],
                data["title"],
                data["message"],
                data["severity"],
                data["related_insight_id"],
                data["created_at"],
                data["expires_at"],
                data["id"],
            ),
        )

    def get(self, alert_id: str) -> ProactiveAlert | None:
        row = self.query_one("SELECT * FROM proactive_alerts WHERE id = ?", (alert_id,))
        return ProactiveAlert.from_db_row(row) if row else None

    def list_active(self, now: datetime, conversation_id: str | None = None) -> list[ProactiveAlert]:
        query = """
            SELECT * FROM proactive_alerts
            WHERE is_dismissed = 0 AND expires_at > ?
        """
        params: tuple[str, ...] = (to_db_timestamp(now),)
        if conversation_id is not None:
            query += " AND conversation_id = ?"
            params += (conversation_id,)
        query += " ORDER BY created_at DESC"
        return [ProactiveAlert.from_db_row(row) for row in self.query_all(query, params)]

    @retry_on_db_lock()
    def mark_read(self, alert_id: str, now: datetime) -> bool:
        return (
            self.execute(
                "UPDATE proactive_alerts SET is_read = 1, read_at = ? WHERE id = ?",
                (to_db_timestamp(now), alert_id),
            )
            > 0
        )

    @retry_on_db_lock()
    def dismiss(self, alert_id: str, now: datetime) -> bool:
        return (
            self.execute(
                "UPDATE proactive_alerts SET is_dismissed = 1, dismissed_at = ? WHERE id = ?",
                (to_db_timestamp(now), alert_id),
            )
            > 0
        )

    @retry_on_db_lock()
    def delete_expired(self, now: datetime) -> int:
        return self.execute(
            "DELETE FROM proactive_alerts WHERE expires_at < ?", (to_db_timestamp(now),)
        )
