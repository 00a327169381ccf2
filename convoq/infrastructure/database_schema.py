"""
Database schema initialization for the convoq local store.

Contains the SQL schema and validation, kept apart from database.py.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from convoq.observability.logging import get_logger

if TYPE_CHECKING:
    from convoq.infrastructure.database import Database

logger = get_logger(__name__)


def init_database(db: Database) -> None:
    """
    Initialize database with schema (idempotent)

    Safe to run multiple times - uses CREATE TABLE IF NOT EXISTS.

    Side Effects:
    - Creates tables if they don't exist
    - Creates indexes for the expiry sweeps and per-conversation lookups
    """
    with db.connection() as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS conversations (
                id TEXT PRIMARY KEY,
                participant_ids TEXT NOT NULL DEFAULT '[]',
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS messages (
                id TEXT PRIMARY KEY,
                conversation_id TEXT NOT NULL,
                sender_id TEXT NOT NULL,
                text TEXT NOT NULL DEFAULT '',
                scheduling_intent TEXT,
                intent_confidence REAL,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_messages_conversation
                ON messages(conversation_id, created_at);

            CREATE TABLE IF NOT EXISTS scheduling_snoozes (
                conversation_id TEXT PRIMARY KEY,
                snoozed_until TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS thread_summaries (
                conversation_id TEXT PRIMARY KEY,
                summary TEXT NOT NULL,
                key_points TEXT NOT NULL DEFAULT '[]',
                generated_at TEXT NOT NULL,
                message_count INTEGER NOT NULL DEFAULT 0,
                expires_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_thread_summaries_expiry
                ON thread_summaries(expires_at);

            CREATE TABLE IF NOT EXISTS meeting_suggestions (
                conversation_id TEXT PRIMARY KEY,
                suggestions TEXT NOT NULL DEFAULT '[]',
                duration_minutes INTEGER NOT NULL,
                participant_count INTEGER NOT NULL,
                generated_at TEXT NOT NULL,
                expires_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_meeting_suggestions_expiry
                ON meeting_suggestions(expires_at);

            CREATE TABLE IF NOT EXISTS search_results (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                query TEXT NOT NULL,
                conversation_id TEXT NOT NULL,
                message_id TEXT NOT NULL,
                snippet TEXT NOT NULL DEFAULT '',
                rank INTEGER NOT NULL,
                timestamp TEXT,
                expires_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_search_results_query
                ON search_results(query, rank);
            CREATE INDEX IF NOT EXISTS idx_search_results_expiry
                ON search_results(expires_at);

            CREATE TABLE IF NOT EXISTS recent_queries (
                query TEXT PRIMARY KEY,
                searched_at TEXT NOT NULL,
                result_count INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS coordination_insights (
                conversation_id TEXT PRIMARY KEY,
                remote_id TEXT NOT NULL,
                team_id TEXT NOT NULL,
                summary TEXT NOT NULL,
                overall_health TEXT NOT NULL,
                generated_at TEXT NOT NULL,
                expires_at TEXT NOT NULL,
                payload TEXT NOT NULL DEFAULT '{}'
            );

            CREATE INDEX IF NOT EXISTS idx_coordination_insights_expiry
                ON coordination_insights(expires_at);

            CREATE TABLE IF NOT EXISTS proactive_alerts (
                id TEXT PRIMARY KEY,
                conversation_id TEXT NOT NULL,
                alert_type TEXT NOT NULL,
                title TEXT NOT NULL,
                message TEXT NOT NULL,
                severity TEXT NOT NULL,
                related_insight_id TEXT,
                is_read INTEGER NOT NULL DEFAULT 0,
                is_dismissed INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                expires_at TEXT NOT NULL,
                read_at TEXT,
                dismissed_at TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_proactive_alerts_conversation
                ON proactive_alerts(conversation_id, created_at);
            CREATE INDEX IF NOT EXISTS idx_proactive_alerts_expiry
                ON proactive_alerts(expires_at);

            CREATE TABLE IF NOT EXISTS decisions (
                id TEXT PRIMARY KEY,
                conversation_id TEXT NOT NULL,
                decision_text TEXT NOT NULL,
                context_summary TEXT NOT NULL DEFAULT '',
                participant_ids TEXT NOT NULL DEFAULT '[]',
                decided_at TEXT NOT NULL,
                follow_up_status TEXT NOT NULL DEFAULT 'pending',
                confidence_score REAL NOT NULL DEFAULT 0,
                reminder_date TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_decisions_conversation
                ON decisions(conversation_id, decided_at);
        """)
        conn.commit()

    logger.debug("Local store schema ready at %s", db.db_path)


REQUIRED_TABLES: dict[str, list[str]] = {
    "conversations": ["id", "participant_ids"],
    "messages": ["id", "conversation_id", "scheduling_intent", "intent_confidence"],
    "scheduling_snoozes": ["conversation_id", "snoozed_until"],
    "thread_summaries": ["conversation_id", "summary", "expires_at"],
    "meeting_suggestions": ["conversation_id", "suggestions", "expires_at"],
    "search_results": ["query", "message_id", "rank", "expires_at"],
    "recent_queries": ["query", "searched_at"],
    "coordination_insights": ["conversation_id", "generated_at", "expires_at"],
    "proactive_alerts": ["id", "is_read", "is_dismissed", "expires_at"],
    "decisions": ["id", "conversation_id", "follow_up_status", "updated_at"],
}


def validate_schema(db: Database) -> bool:
    """
    Validate database has expected schema

    Raises:
        ValueError: If tables or columns are missing
    """
    with db.connection() as conn:
        existing_tables = {
            row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }

        missing_tables = set(REQUIRED_TABLES) - existing_tables
        if missing_tables:
            raise ValueError(f"Database missing tables: {missing_tables}")

        for table, required_cols in REQUIRED_TABLES.items():
            # Identifiers can't be parameterized; names come from the dict above
            existing_cols = {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}
            missing_cols = set(required_cols) - existing_cols
            if missing_cols:
                raise ValueError(f"Table '{table}' missing columns: {missing_cols}")

    return True
