from __future__ import annotations

from datetime import timedelta, timezone

import pytest

from convoq.ai.errors import NetworkError, UnauthorizedError
from convoq.config import ALERTS_COLLECTION, INSIGHTS_COLLECTION
from convoq.observability.telemetry import get_counter


@pytest.fixture
def insights(orchestrator):
    return orchestrator.insights


@pytest.fixture
def insight_doc(clock):
    def _doc(conversation_id, generated_hours_ago=1, summary="Team is on track", **overrides):
        generated = clock() - timedelta(hours=generated_hours_ago)
        data = {
            "conversationId": conversation_id,
            "teamId": "team-1",
            "summary": summary,
            "overallHealth": "good",
            "generatedAt": generated.isoformat(),
            "expiresAt": (generated + timedelta(days=1)).isoformat(),
            "actionItems": [
                {"description": "Send the deck", "status": "pending", "assignee": "user-2"},
                {"description": "missing status"},
            ],
            "blockers": [{"description": "Waiting on legal", "blockedBy": "legal"}],
        }
        data.update(overrides)
        return data

    return _doc


@pytest.fixture
def alert_doc(clock):
    def _doc(conversation_id, title="Deadline tomorrow", **overrides):
        data = {
            "conversationId": conversation_id,
            "alertType": "upcoming_deadline",
            "title": title,
            "message": "The report is due tomorrow",
            "severity": "high",
            "createdAt": clock().isoformat(),
            "expiresAt": (clock() + timedelta(days=2)).isoformat(),
        }
        data.update(overrides)
        return data

    return _doc


@pytest.mark.asyncio
async def test_malformed_documents_are_skipped(insights, record_store, insight_doc, store):
    record_store.put(INSIGHTS_COLLECTION, "i-1", insight_doc("conv-1"))
    record_store.put(INSIGHTS_COLLECTION, "i-2", insight_doc("conv-2"))
    broken = insight_doc("conv-3")
    del broken["generatedAt"]
    record_store.put(INSIGHTS_COLLECTION, "i-3", broken)
    record_store.put(INSIGHTS_COLLECTION, "i-4", insight_doc("conv-4"))

    stats = await insights.sync_insights()

    assert (stats.fetched, stats.inserted, stats.skipped) == (4, 3, 1)
    assert store.insights.count() == 3
    assert store.insights.get("conv-3") is None
    assert get_counter(f"sync.{INSIGHTS_COLLECTION}.skipped") == 1


@pytest.mark.asyncio
async def test_nested_lists_drop_malformed_entries(insights, record_store, insight_doc):
    record_store.put(INSIGHTS_COLLECTION, "i-1", insight_doc("conv-1", blockers="not a list"))

    await insights.sync_insights()
    record = insights.fetch_insight("conv-1")

    assert record.remote_id == "i-1"
    assert record.payload["actionItems"] == [
        {"description": "Send the deck", "status": "pending", "assignee": "user-2", "deadline": None}
    ]
    assert record.payload["blockers"] == []


@pytest.mark.asyncio
async def test_resync_of_same_documents_is_deduplicated(insights, record_store, insight_doc):
    record_store.put(INSIGHTS_COLLECTION, "i-1", insight_doc("conv-1"))
    await insights.sync_insights()

    stats = await insights.sync_insights()

    assert (stats.inserted, stats.updated, stats.deduplicated) == (0, 0, 1)


@pytest.mark.asyncio
async def test_newer_insight_replaces_older_only(insights, record_store, insight_doc, store):
    record_store.put(INSIGHTS_COLLECTION, "i-1", insight_doc("conv-1", generated_hours_ago=2))
    await insights.sync_insights()

    record_store.put(
        INSIGHTS_COLLECTION, "i-1", insight_doc("conv-1", generated_hours_ago=1, summary="newer")
    )
    stats = await insights.sync_insights()
    assert stats.updated == 1
    assert store.insights.get("conv-1").summary == "newer"

    record_store.put(
        INSIGHTS_COLLECTION, "i-1", insight_doc("conv-1", generated_hours_ago=3, summary="older")
    )
    stats = await insights.sync_insights()
    assert stats.deduplicated == 1
    assert store.insights.get("conv-1").summary == "newer"


@pytest.mark.asyncio
async def test_same_instant_in_another_offset_is_not_newer(
    insights, record_store, insight_doc, store, clock
):
    record_store.put(INSIGHTS_COLLECTION, "i-1", insight_doc("conv-1"))
    await insights.sync_insights()

    generated = clock() - timedelta(hours=1)
    shifted = generated.astimezone(timezone(timedelta(hours=2))).isoformat()
    assert shifted != generated.isoformat()
    record_store.put(
        INSIGHTS_COLLECTION,
        "i-1",
        insight_doc("conv-1", summary="same instant", generatedAt=shifted),
    )
    stats = await insights.sync_insights()

    assert (stats.updated, stats.deduplicated) == (0, 1)
    assert store.insights.get("conv-1").summary == "Team is on track"


@pytest.mark.asyncio
async def test_alerts_keep_local_flags_across_syncs(insights, record_store, alert_doc, store):
    record_store.put(ALERTS_COLLECTION, "a-1", alert_doc("conv-1"))
    record_store.put(ALERTS_COLLECTION, "a-2", alert_doc("conv-2"))
    await insights.sync_alerts()

    assert insights.mark_alert_read("a-1")
    assert insights.dismiss_alert("a-2")

    record_store.put(ALERTS_COLLECTION, "a-1", alert_doc("conv-1", title="Deadline moved"))
    stats = await insights.sync_alerts()

    assert (stats.updated, stats.deduplicated) == (1, 1)
    first = store.alerts.get("a-1")
    assert first.title == "Deadline moved"
    assert first.is_read and first.read_at is not None
    assert store.alerts.get("a-2").is_dismissed
    assert [alert.id for alert in insights.fetch_alerts()] == ["a-1"]
    assert insights.fetch_alerts("conv-2") == []


@pytest.mark.asyncio
async def test_malformed_alert_is_skipped(insights, record_store, alert_doc):
    record_store.put(ALERTS_COLLECTION, "a-1", alert_doc("conv-1"))
    record_store.put(ALERTS_COLLECTION, "a-2", {"title": "no conversation"})

    stats = await insights.sync_alerts()

    assert (stats.inserted, stats.skipped) == (1, 1)


@pytest.mark.asyncio
async def test_refresh_syncs_and_sweeps_expired(
    insights, record_store, insight_doc, alert_doc, store, clock
):
    record_store.put(INSIGHTS_COLLECTION, "i-1", insight_doc("conv-1"))
    record_store.put(
        ALERTS_COLLECTION,
        "a-old",
        alert_doc("conv-1", expiresAt=(clock() - timedelta(hours=1)).isoformat()),
    )

    assert await insights.refresh() is True

    assert store.insights.count() == 1
    assert store.alerts.get("a-old") is None
    assert insights.error_message is None
    assert not insights.is_processing


@pytest.mark.asyncio
async def test_expired_insight_is_hidden_then_swept(insights, record_store, insight_doc, clock):
    record_store.put(INSIGHTS_COLLECTION, "i-1", insight_doc("conv-1"))
    await insights.sync_insights()

    clock.advance(24 * 3600)

    assert insights.fetch_insight("conv-1") is None
    assert insights.fetch_all_insights() == []
    assert insights.clear_expired_insights() == 1


@pytest.mark.asyncio
async def test_refresh_failure_sets_error_message(insights, record_store):
    record_store.fetch_error = NetworkError("record store unreachable")

    assert await insights.refresh() is False

    assert "record store unreachable" in insights.error_message
    assert get_counter("sync.refresh_failed") == 1
    assert not insights.is_processing


@pytest.mark.asyncio
async def test_refresh_skipped_offline_or_signed_out(insights, record_store, network, auth):
    record_store.fetch_error = AssertionError("should not fetch")

    auth.sign_out()
    assert await insights.refresh() is False

    network.set_connected(False)
    assert await insights.refresh() is False
    assert insights.error_message is None


@pytest.mark.asyncio
async def test_sync_requires_signed_in_user(insights, auth):
    auth.sign_out()

    with pytest.raises(UnauthorizedError):
        await insights.sync_insights()


@pytest.mark.asyncio
async def test_forced_refresh_triggers_analysis_first(insights, transport):
    transport.queue(
        "triggerCoordinationAnalysis", {"conversationsAnalyzed": 4, "insightsGenerated": 2}
    )

    assert await insights.refresh(force_analysis=True) is True

    assert transport.calls_to("triggerCoordinationAnalysis") == [{}]
