"""
Local store records (Pydantic v2).

Each record mirrors one row of the local SQLite store and knows how to
convert itself to and from a row. Timestamps are timezone-aware UTC and are
persisted with to_db_timestamp so expiry sweeps can compare them as text.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from convoq.utils.clock import from_db_timestamp, to_db_timestamp, utc_now

NO_INTENT = "none"

FollowUpStatus = Literal["pending", "completed", "cancelled"]


def _loads(value: str | None, default: Any) -> Any:
    if not value:
        return default
    return json.loads(value)


class MessageRecord(BaseModel):
    """A chat message as written by the host's messaging layer."""

    model_config = ConfigDict(frozen=False)

    id: str
    conversation_id: str
    sender_id: str
    text: str = ""
    scheduling_intent: str | None = Field(
        default=None, description="Classifier label, e.g. 'proposing_time' or 'none'"
    )
    intent_confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def has_scheduling_intent(self) -> bool:
        return self.scheduling_intent is not None and self.scheduling_intent != NO_INTENT

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "sender_id": self.sender_id,
            "text": self.text,
            "scheduling_intent": self.scheduling_intent,
            "intent_confidence": self.intent_confidence,
            "created_at": to_db_timestamp(self.created_at),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> MessageRecord:
        return cls(
            id=row["id"],
            conversation_id=row["conversation_id"],
            sender_id=row["sender_id"],
            text=row.get("text") or "",
            scheduling_intent=row.get("scheduling_intent"),
            intent_confidence=row.get("intent_confidence"),
            created_at=from_db_timestamp(row.get("created_at")) or utc_now(),
        )


class ConversationRecord(BaseModel):
    model_config = ConfigDict(frozen=False)

    id: str
    participant_ids: list[str] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "participant_ids": json.dumps(self.participant_ids),
            "updated_at": to_db_timestamp(self.updated_at),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> ConversationRecord:
        return cls(
            id=row["id"],
            participant_ids=_loads(row.get("participant_ids"), []),
            updated_at=from_db_timestamp(row.get("updated_at")) or utc_now(),
        )


class SnoozeRecord(BaseModel):
    """User request to suppress scheduling prefetch for a conversation."""

    conversation_id: str
    snoozed_until: datetime
    updated_at: datetime = Field(default_factory=utc_now)

    def is_active(self, now: datetime) -> bool:
        return self.snoozed_until > now


class ThreadSummaryRecord(BaseModel):
    model_config = ConfigDict(frozen=False)

    conversation_id: str
    summary: str
    key_points: list[str] = Field(default_factory=list)
    generated_at: datetime
    message_count: int = 0
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "summary": self.summary,
            "key_points": json.dumps(self.key_points),
            "generated_at": to_db_timestamp(self.generated_at),
            "message_count": self.message_count,
            "expires_at": to_db_timestamp(self.expires_at),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> ThreadSummaryRecord:
        return cls(
            conversation_id=row["conversation_id"],
            summary=row["summary"],
            key_points=_loads(row.get("key_points"), []),
            generated_at=from_db_timestamp(row["generated_at"]),
            message_count=row.get("message_count") or 0,
            expires_at=from_db_timestamp(row["expires_at"]),
        )


class MeetingSuggestionRecord(BaseModel):
    model_config = ConfigDict(frozen=False)

    conversation_id: str
    suggestions: list[dict[str, Any]] = Field(default_factory=list)
    duration_minutes: int
    participant_count: int
    generated_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "suggestions": json.dumps(self.suggestions),
            "duration_minutes": self.duration_minutes,
            "participant_count": self.participant_count,
            "generated_at": to_db_timestamp(self.generated_at),
            "expires_at": to_db_timestamp(self.expires_at),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> MeetingSuggestionRecord:
        return cls(
            conversation_id=row["conversation_id"],
            suggestions=_loads(row.get("suggestions"), []),
            duration_minutes=row["duration_minutes"],
            participant_count=row["participant_count"],
            generated_at=from_db_timestamp(row["generated_at"]),
            expires_at=from_db_timestamp(row["expires_at"]),
        )


class SearchResultRecord(BaseModel):
    model_config = ConfigDict(frozen=False)

    query: str
    conversation_id: str
    message_id: str
    snippet: str = ""
    rank: int
    timestamp: datetime | None = None
    expires_at: datetime

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "conversation_id": self.conversation_id,
            "message_id": self.message_id,
            "snippet": self.snippet,
            "rank": self.rank,
            "timestamp": to_db_timestamp(self.timestamp) if self.timestamp else None,
            "expires_at": to_db_timestamp(self.expires_at),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> SearchResultRecord:
        return cls(
            query=row["query"],
            conversation_id=row["conversation_id"],
            message_id=row["message_id"],
            snippet=row.get("snippet") or "",
            rank=row["rank"],
            timestamp=from_db_timestamp(row.get("timestamp")),
            expires_at=from_db_timestamp(row["expires_at"]),
        )


class RecentQuery(BaseModel):
    query: str
    searched_at: datetime
    result_count: int = 0


class CoordinationInsightRecord(BaseModel):
    """Local mirror of a remote coordination insight, one per conversation."""

    model_config = ConfigDict(frozen=False)

    remote_id: str
    conversation_id: str
    team_id: str
    summary: str
    overall_health: str
    generated_at: datetime
    expires_at: datetime
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Action items, stale decisions, deadlines, conflicts and blockers",
    )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "remote_id": self.remote_id,
            "team_id": self.team_id,
            "summary": self.summary,
            "overall_health": self.overall_health,
            "generated_at": to_db_timestamp(self.generated_at),
            "expires_at": to_db_timestamp(self.expires_at),
            "payload": json.dumps(self.payload),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> CoordinationInsightRecord:
        return cls(
            remote_id=row["remote_id"],
            conversation_id=row["conversation_id"],
            team_id=row["team_id"],
            summary=row["summary"],
            overall_health=row["overall_health"],
            generated_at=from_db_timestamp(row["generated_at"]),
            expires_at=from_db_timestamp(row["expires_at"]),
            payload=_loads(row.get("payload"), {}),
        )


class ProactiveAlert(BaseModel):
    """Alert pushed by the coordination backend. Active = not expired, not dismissed."""

    model_config = ConfigDict(frozen=False)

    id: str
    conversation_id: str
    alert_type: str
    title: str
    message: str
    severity: str
    related_insight_id: str | None = None
    is_read: bool = False
    is_dismissed: bool = False
    created_at: datetime
    expires_at: datetime
    read_at: datetime | None = None
    dismissed_at: datetime | None = None

    def is_active(self, now: datetime) -> bool:
        return not self.is_dismissed and self.expires_at > now

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "alert_type": self.alert_type,
            "title": self.title,
            "message": self.message,
            "severity": self.severity,
            "related_insight_id": self.related_insight_id,
            "is_read": int(self.is_read),
            "is_dismissed": int(self.is_dismissed),
            "created_at": to_db_timestamp(self.created_at),
            "expires_at": to_db_timestamp(self.expires_at),
            "read_at": to_db_timestamp(self.read_at) if self.read_at else None,
            "dismissed_at": to_db_timestamp(self.dismissed_at) if self.dismissed_at else None,
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> ProactiveAlert:
        return cls(
            id=row["id"],
            conversation_id=row["conversation_id"],
            alert_type=row["alert_type"],
            title=row["title"],
            message=row["message"],
            severity=row["severity"],
            related_insight_id=row.get("related_insight_id"),
            is_read=bool(row.get("is_read")),
            is_dismissed=bool(row.get("is_dismissed")),
            created_at=from_db_timestamp(row["created_at"]),
            expires_at=from_db_timestamp(row["expires_at"]),
            read_at=from_db_timestamp(row.get("read_at")),
            dismissed_at=from_db_timestamp(row.get("dismissed_at")),
        )


class DecisionRecord(BaseModel):
    """A decision the backend extracted from a conversation, keyed by its remote id."""

    model_config = ConfigDict(frozen=False)

    id: str
    conversation_id: str
    decision_text: str
    context_summary: str = ""
    participant_ids: list[str] = Field(default_factory=list)
    decided_at: datetime
    follow_up_status: FollowUpStatus = "pending"
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    reminder_date: datetime | None = None
    created_at: datetime
    updated_at: datetime

    def to_db_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "decision_text": self.decision_text,
            "context_summary": self.context_summary,
            "participant_ids": json.dumps(self.participant_ids),
            "decided_at": to_db_timestamp(self.decided_at),
            "follow_up_status": self.follow_up_status,
            "confidence_score": self.confidence_score,
            "reminder_date": to_db_timestamp(self.reminder_date) if self.reminder_date else None,
            "created_at": to_db_timestamp(self.created_at),
            "updated_at": to_db_timestamp(self.updated_at),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> DecisionRecord:
        return cls(
            id=row["id"],
            conversation_id=row["conversation_id"],
            decision_text=row["decision_text"],
            context_summary=row.get("context_summary") or "",
            participant_ids=_loads(row.get("participant_ids"), []),
            decided_at=from_db_timestamp(row["decided_at"]),
            follow_up_status=row["follow_up_status"],
            confidence_score=row.get("confidence_score") or 0.0,
            reminder_date=from_db_timestamp(row.get("reminder_date")),
            created_at=from_db_timestamp(row["created_at"]),
            updated_at=from_db_timestamp(row["updated_at"]),
        )
