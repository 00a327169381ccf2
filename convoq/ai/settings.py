"""
Runtime settings for one Orchestrator instance.

Defaults come from convoq.config; hosts override per instance, e.g.
OrchestratorSettings(scheduling_debounce_seconds=60).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from convoq import config


class OrchestratorSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Scheduling auto-prefetch
    scheduling_debounce_seconds: float = Field(default=config.SCHEDULING_DEBOUNCE_SECONDS, ge=0)
    scheduling_confidence_threshold: float = Field(
        default=config.SCHEDULING_CONFIDENCE_THRESHOLD, ge=0.0, le=1.0
    )
    scheduling_min_human_participants: int = Field(
        default=config.SCHEDULING_MIN_HUMAN_PARTICIPANTS, ge=1
    )
    default_snooze_seconds: float = Field(default=config.SCHEDULING_DEFAULT_SNOOZE_SECONDS, gt=0)
    synthetic_participant_prefixes: tuple[str, ...] = config.SYNTHETIC_PARTICIPANT_PREFIXES
    meeting_duration_minutes: int = Field(default=config.MEETING_DEFAULT_DURATION_MINUTES, gt=0)
    meeting_preferred_days: int = Field(default=config.MEETING_DEFAULT_PREFERRED_DAYS, gt=0)

    # Remote calls
    max_attempts: int = Field(default=config.REMOTE_MAX_ATTEMPTS, ge=1)
    base_delay_seconds: float = Field(default=config.REMOTE_BASE_DELAY_SECONDS, ge=0)
    max_delay_seconds: float = Field(default=config.REMOTE_MAX_DELAY_SECONDS, ge=0)
    jitter_ratio: float = Field(default=config.REMOTE_JITTER_RATIO, ge=0.0, lt=1.0)
    credential_ttl_seconds: float = Field(default=config.CREDENTIAL_TTL_SECONDS, gt=0)

    # Caches
    summary_cache_ttl_seconds: float = config.SUMMARY_CACHE_TTL_SECONDS
    summary_local_reuse_seconds: float = config.SUMMARY_LOCAL_REUSE_SECONDS
    summary_local_ttl_seconds: float = config.SUMMARY_LOCAL_TTL_SECONDS
    action_items_cache_ttl_seconds: float = config.ACTION_ITEMS_CACHE_TTL_SECONDS
    search_cache_ttl_seconds: float = config.SEARCH_CACHE_TTL_SECONDS
    search_local_ttl_seconds: float = config.SEARCH_LOCAL_TTL_SECONDS

    telemetry_enabled: bool = config.TELEMETRY_ENABLED
