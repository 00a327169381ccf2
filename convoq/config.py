"""Centralized configuration for convoq.

Re-exports everything from convoq.infrastructure.settings, then adds typed
tunables for scheduling, retry, caching and sync. Environment overrides use
safe defaults so hosts can start without extra configuration.
"""

from __future__ import annotations

import os

from convoq.infrastructure.settings import *  # noqa: F401, F403  (re-export existing)


def _env(key: str, default: str) -> str:
    return os.getenv(key, default)


# --- Scheduling intent auto-prefetch ---
# Both values were tuned by hand; treat them as knobs, not invariants.
SCHEDULING_DEBOUNCE_SECONDS: float = float(_env("CONVOQ_SCHEDULING_DEBOUNCE_SECONDS", "300"))
SCHEDULING_CONFIDENCE_THRESHOLD: float = float(_env("CONVOQ_SCHEDULING_CONFIDENCE", "0.6"))
SCHEDULING_MIN_HUMAN_PARTICIPANTS: int = 2
SCHEDULING_DEFAULT_SNOOZE_SECONDS: float = 3600.0
SYNTHETIC_PARTICIPANT_PREFIXES: tuple[str, ...] = ("bot:",)

# --- Meeting suggestion defaults used by auto-prefetch ---
MEETING_DEFAULT_DURATION_MINUTES: int = 60
MEETING_DEFAULT_PREFERRED_DAYS: int = 14

# --- Remote calls ---
REMOTE_MAX_ATTEMPTS: int = int(_env("CONVOQ_REMOTE_MAX_ATTEMPTS", "3"))
REMOTE_BASE_DELAY_SECONDS: float = 0.5
REMOTE_MAX_DELAY_SECONDS: float = 8.0
REMOTE_JITTER_RATIO: float = 0.25
CREDENTIAL_TTL_SECONDS: float = float(_env("CONVOQ_CREDENTIAL_TTL", "300"))

# --- Caches ---
SUMMARY_CACHE_TTL_SECONDS: float = 3600.0
SUMMARY_LOCAL_REUSE_SECONDS: float = 3600.0
SUMMARY_LOCAL_TTL_SECONDS: float = 24 * 3600.0
ACTION_ITEMS_CACHE_TTL_SECONDS: float = 3600.0
SEARCH_CACHE_TTL_SECONDS: float = 3600.0
SEARCH_LOCAL_TTL_SECONDS: float = 3600.0

# --- Feature defaults ---
SUMMARY_DEFAULT_MESSAGE_LIMIT: int = 50
ACTION_ITEMS_DEFAULT_WINDOW_DAYS: int = 7
SEARCH_DEFAULT_MAX_RESULTS: int = 20
DECISIONS_DEFAULT_WINDOW_DAYS: int = 30

# --- Remote collections ---
INSIGHTS_COLLECTION: str = "coordinationInsights"
ALERTS_COLLECTION: str = "proactiveAlerts"
TELEMETRY_COLLECTION: str = "ai_telemetry"
FEEDBACK_COLLECTION: str = "ai_feedback"
MEETING_ANALYTICS_COLLECTION: str = "analytics/meetingSuggestions/interactions"
DECISIONS_COLLECTION_TEMPLATE: str = "conversations/{conversation_id}/decisions"

# --- Database ---
DB_CONNECT_TIMEOUT: float = 10.0
DB_RETRY_MAX: int = 5
DB_RETRY_BASE_DELAY: float = 0.05
DB_RETRY_MAX_DELAY: float = 1.0
DB_RETRY_JITTER: float = 0.1
