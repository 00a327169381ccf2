from __future__ import annotations

import pytest

from convoq.ai.errors import NetworkError, NotConfiguredError
from convoq.ai.features.scheduling import PrefetchPhase
from convoq.ai.models import AIFeedback
from convoq.ai.orchestrator import Orchestrator
from convoq.config import FEEDBACK_COLLECTION, INSIGHTS_COLLECTION, TELEMETRY_COLLECTION
from convoq.network import NetworkMonitor


@pytest.mark.asyncio
async def test_hooks_require_configuration():
    orchestrator = Orchestrator()

    assert not orchestrator.is_configured
    assert not orchestrator.is_processing
    assert orchestrator.error_message is None
    with pytest.raises(NotConfiguredError):
        await orchestrator.on_message_mutation("conv-1", "msg-1")
    with pytest.raises(NotConfiguredError):
        orchestrator.clear_expired_cached_data()
    with pytest.raises(NotConfiguredError):
        orchestrator.on_sign_out()


def test_clear_expired_cached_data_is_idempotent(orchestrator, clock):
    orchestrator.scheduling.snooze("conv-1", duration_seconds=60)
    clock.advance(120)

    first = orchestrator.clear_expired_cached_data()
    second = orchestrator.clear_expired_cached_data()

    assert set(first) == {
        "summaries",
        "search_results",
        "meeting_suggestions",
        "snoozes",
        "insights",
        "alerts",
        "memory",
    }
    assert first["snoozes"] == 1
    assert all(count == 0 for count in second.values())


def test_failing_sweep_does_not_stop_the_others(orchestrator, clock, monkeypatch):
    orchestrator.scheduling.snooze("conv-1", duration_seconds=60)
    clock.advance(120)

    def boom():
        raise RuntimeError("disk full")

    monkeypatch.setattr(orchestrator.summary, "clear_expired_summaries", boom)
    results = orchestrator.clear_expired_cached_data()

    assert "summaries" not in results
    assert results["snoozes"] == 1
    assert "disk full" in orchestrator.last_error


@pytest.mark.asyncio
async def test_sign_out_resets_in_memory_state(
    orchestrator, transport, seed, meeting_payload, clock, auth, store
):
    seed("conv-1", ["user-1", "user-2"], "msg-1")
    transport.queue("suggestMeetingTimes", meeting_payload("conv-1", clock()))
    await orchestrator.on_message_mutation("conv-1", "msg-1")
    assert orchestrator.scheduling.phase("conv-1") is PrefetchPhase.PREFETCHED

    orchestrator.on_sign_out()
    auth.sign_out()

    assert orchestrator.scheduling.phase("conv-1") is PrefetchPhase.IDLE
    assert orchestrator.meetings.cache.get("conv-1") is None
    assert orchestrator.meetings.state.value("conv-1") is None
    # Persisted rows belong to the device, not the session
    assert store.meeting_suggestions.get("conv-1") is not None


@pytest.mark.asyncio
async def test_sign_in_refreshes_insights(orchestrator, record_store, clock, store):
    record_store.put(
        INSIGHTS_COLLECTION,
        "i-1",
        {
            "conversationId": "conv-1",
            "teamId": "team-1",
            "summary": "All good",
            "overallHealth": "good",
            "generatedAt": clock().isoformat(),
            "expiresAt": clock().replace(year=2026).isoformat(),
        },
    )

    await orchestrator.on_sign_in()

    assert store.insights.get("conv-1").summary == "All good"
    assert orchestrator.error_message is None


@pytest.mark.asyncio
async def test_sign_in_failure_surfaces_in_error_message(orchestrator, record_store):
    record_store.fetch_error = NetworkError("offline")

    await orchestrator.on_sign_in()

    assert "offline" in orchestrator.error_message


@pytest.mark.asyncio
async def test_network_restore_drains_queue(
    orchestrator, network, transport, seed, meeting_payload, clock
):
    seed("conv-1", ["user-1", "user-2"], "msg-1")
    transport.set_handler(
        "suggestMeetingTimes", lambda payload: meeting_payload(payload["conversationId"], clock())
    )
    network.set_connected(False)
    await orchestrator.on_message_mutation("conv-1", "msg-1")
    assert len(orchestrator.scheduling.pending_items()) == 1

    network.set_connected(True)
    await orchestrator.aclose()

    assert orchestrator.scheduling.pending_items() == []
    assert orchestrator.scheduling.phase("conv-1") is PrefetchPhase.PREFETCHED
    assert len(transport.calls_to("suggestMeetingTimes")) == 1


@pytest.mark.asyncio
async def test_reconfigure_moves_network_subscription(
    orchestrator, store, auth, transport, record_store, telemetry_sink, clock, sleeper
):
    old_network = orchestrator.network
    new_network = NetworkMonitor(connected=False)
    orchestrator.configure(
        store=store,
        auth=auth,
        network=new_network,
        transport=transport,
        record_store=record_store,
        telemetry_sink=telemetry_sink,
        clock=clock,
        sleep=sleeper,
    )
    calls = []

    async def fake_restored():
        calls.append("restored")

    orchestrator.on_network_restored = fake_restored

    old_network.set_connected(False)
    old_network.set_connected(True)
    new_network.set_connected(True)
    await orchestrator.aclose()

    assert calls == ["restored"]


@pytest.mark.asyncio
async def test_submit_feedback_writes_document(orchestrator, record_store):
    feedback = AIFeedback(
        user_id="user-1",
        conversation_id="conv-1",
        feature_type="summary",
        original_content="Summary text",
        user_correction="Better summary",
        rating=4,
    )

    await orchestrator.submit_feedback(feedback)

    document = record_store.written[FEEDBACK_COLLECTION][feedback.feedback_id]
    assert document["featureType"] == "summary"
    assert document["rating"] == 4


@pytest.mark.asyncio
async def test_submit_feedback_propagates_write_failure(orchestrator, record_store):
    record_store.write_error = NetworkError("offline")
    feedback = AIFeedback(
        user_id="user-1", conversation_id="conv-1", feature_type="search", original_content="x"
    )

    with pytest.raises(NetworkError):
        await orchestrator.submit_feedback(feedback)


@pytest.mark.asyncio
async def test_default_sink_writes_telemetry_to_record_store(
    store, auth, network, transport, record_store, clock, sleeper, settings
):
    orchestrator = Orchestrator()
    orchestrator.configure(
        store=store,
        auth=auth,
        network=network,
        transport=transport,
        record_store=record_store,
        settings=settings,
        clock=clock,
        sleep=sleeper,
    )
    transport.queue("recordDecisions", {"analyzed": 1, "conversationId": "conv-1"})

    await orchestrator.decisions.record_decisions("conv-1")
    await orchestrator.aclose()

    [document] = record_store.written[TELEMETRY_COLLECTION].values()
    assert document["functionName"] == "recordDecisions"
    assert document["userId"] == "user-1"


@pytest.mark.asyncio
async def test_clear_caches_drops_memory_but_keeps_snoozes(
    orchestrator, transport, clock, meeting_payload
):
    transport.queue("suggestMeetingTimes", meeting_payload("conv-1", clock()))
    await orchestrator.meetings.suggest_meeting_times("conv-1", ["user-1", "user-2"])
    orchestrator.scheduling.snooze("conv-2")

    orchestrator.clear_caches()

    assert len(orchestrator.meetings.cache) == 0
    assert orchestrator.scheduling.is_snoozed("conv-2")
    assert not orchestrator.is_processing


@pytest.mark.asyncio
async def test_refresh_insights_reports_outcome(orchestrator, record_store):
    assert await orchestrator.refresh_insights() is True

    record_store.fetch_error = NetworkError("offline")
    assert await orchestrator.refresh_insights() is False
    assert orchestrator.error_message.startswith("Failed to refresh coordination insights")
