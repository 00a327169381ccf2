"""
Wire models (Pydantic v2) for remote AI operations and synced documents.

Remote payloads use camelCase keys; models accept both camelCase and
snake_case and ignore unknown keys so the backend can add fields freely.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from convoq.storage.models import FollowUpStatus
from convoq.utils.clock import utc_now


class RemoteModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def _lenient_list(model: type[BaseModel], value: Any) -> list[Any]:
    """Parse list entries one at a time, dropping the malformed ones."""
    if not isinstance(value, list):
        return []
    parsed = []
    for item in value:
        try:
            parsed.append(model.model_validate(item))
        except ValidationError:
            continue
    return parsed


# --- Thread summary ---


class ThreadSummaryResponse(RemoteModel):
    summary: str
    key_points: list[str] = Field(default_factory=list)
    conversation_id: str
    timestamp: datetime
    message_count: int = 0


# --- Action items ---


class ActionItem(RemoteModel):
    id: str
    task: str
    assigned_to: str | None = None
    due_date: str | None = None
    priority: str = "medium"
    status: str = "pending"
    conversation_id: str
    created_at: str | None = None
    updated_at: str | None = None


class ActionItemsResponse(RemoteModel):
    items: list[ActionItem] = Field(default_factory=list)
    conversation_id: str
    window_days: int
    message_count: int = 0


# --- Smart search ---


class SearchHit(RemoteModel):
    id: str
    conversation_id: str
    message_id: str
    snippet: str = ""
    rank: int
    timestamp: datetime | None = None


class SearchResultGroup(RemoteModel):
    conversation_id: str
    hits: list[SearchHit] = Field(default_factory=list)


class SmartSearchResponse(RemoteModel):
    """smartSearch replies with snake_case keys (grouped_results, total_hits)."""

    grouped_results: list[SearchResultGroup] = Field(default_factory=list)
    query: str
    total_hits: int = 0

    def hits(self) -> list[SearchHit]:
        return [hit for group in self.grouped_results for hit in group.hits]


# --- Meeting suggestions ---


class MeetingTimeSuggestion(RemoteModel):
    start_time: datetime
    end_time: datetime
    score: float
    justification: str = ""
    day_of_week: str = ""
    time_of_day: str = ""


class MeetingSuggestionsResponse(RemoteModel):
    suggestions: list[MeetingTimeSuggestion] = Field(default_factory=list)
    conversation_id: str
    duration_minutes: int
    participant_count: int
    generated_at: datetime
    expires_at: datetime


# --- Decisions ---


class TrackedDecisionsResponse(RemoteModel):
    analyzed: int = 0
    persisted: int = 0
    skipped: int = 0
    conversation_id: str


class RemoteDecisionDocument(RemoteModel):
    """A document of conversations/{id}/decisions (id is the document id)."""

    decision_text: str
    context_summary: str = ""
    participant_ids: list[str] = Field(default_factory=list)
    decided_at: datetime
    follow_up_status: FollowUpStatus = "pending"
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    reminder_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime


# --- Coordination analysis ---


class CoordinationAnalysisResult(RemoteModel):
    conversations_analyzed: int = 0
    insights_generated: int = 0


class InsightActionItem(RemoteModel):
    description: str
    status: str
    assignee: str | None = None
    deadline: str | None = None


class StaleDecision(RemoteModel):
    topic: str
    last_mentioned: str
    reason: str


class UpcomingDeadline(RemoteModel):
    description: str
    due_date: str
    urgency: str


class SchedulingConflict(RemoteModel):
    description: str
    participants: list[str]


class Blocker(RemoteModel):
    description: str
    blocked_by: str | None = None


class RemoteInsightDocument(RemoteModel):
    """A document of the remote coordinationInsights collection."""

    conversation_id: str
    team_id: str
    summary: str
    overall_health: str
    generated_at: datetime
    expires_at: datetime
    action_items: list[InsightActionItem] = Field(default_factory=list)
    stale_decisions: list[StaleDecision] = Field(default_factory=list)
    upcoming_deadlines: list[UpcomingDeadline] = Field(default_factory=list)
    scheduling_conflicts: list[SchedulingConflict] = Field(default_factory=list)
    blockers: list[Blocker] = Field(default_factory=list)

    @field_validator("action_items", mode="before")
    @classmethod
    def _action_items(cls, value: Any) -> list[Any]:
        return _lenient_list(InsightActionItem, value)

    @field_validator("stale_decisions", mode="before")
    @classmethod
    def _stale_decisions(cls, value: Any) -> list[Any]:
        return _lenient_list(StaleDecision, value)

    @field_validator("upcoming_deadlines", mode="before")
    @classmethod
    def _upcoming_deadlines(cls, value: Any) -> list[Any]:
        return _lenient_list(UpcomingDeadline, value)

    @field_validator("scheduling_conflicts", mode="before")
    @classmethod
    def _scheduling_conflicts(cls, value: Any) -> list[Any]:
        return _lenient_list(SchedulingConflict, value)

    @field_validator("blockers", mode="before")
    @classmethod
    def _blockers(cls, value: Any) -> list[Any]:
        return _lenient_list(Blocker, value)

    def details(self) -> dict[str, Any]:
        """Nested lists as stored in the local record's payload."""
        return self.model_dump(
            mode="json",
            by_alias=True,
            include={
                "action_items",
                "stale_decisions",
                "upcoming_deadlines",
                "scheduling_conflicts",
                "blockers",
            },
        )


class RemoteAlertDocument(RemoteModel):
    """A document of the remote proactiveAlerts collection (id is the document id)."""

    conversation_id: str
    alert_type: str
    title: str
    message: str
    severity: str = "medium"
    related_insight_id: str | None = None
    created_at: datetime
    expires_at: datetime


# --- Feedback ---


class AIFeedback(RemoteModel):
    """User feedback on AI output, written to the ai_feedback collection."""

    feedback_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    conversation_id: str
    feature_type: str = Field(..., description="summary, action_items, search, meeting_suggestions")
    original_content: str
    user_correction: str | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    comment: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)
    metadata: dict[str, str] | None = None
