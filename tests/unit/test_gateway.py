from __future__ import annotations

import pytest

from convoq.ai.errors import InvalidResponseError, NetworkError, ServerError, UnauthorizedError
from convoq.ai.gateway import RemoteCallGateway
from convoq.ai.models import TrackedDecisionsResponse
from convoq.ai.telemetry import TelemetryRecorder
from convoq.observability.telemetry import get_latency_stats

OK = {"analyzed": 3, "persisted": 2, "skipped": 1, "conversationId": "conv-1"}


@pytest.fixture
def recorder(telemetry_sink, clock):
    return TelemetryRecorder(telemetry_sink, clock=clock)


@pytest.fixture
def gateway(transport, auth, recorder, sleeper, clock):
    return RemoteCallGateway(
        transport, auth, recorder, max_attempts=3, jitter=0.0, sleep=sleeper, clock=clock
    )


@pytest.mark.asyncio
async def test_success_validates_and_emits_one_event(gateway, transport, recorder, telemetry_sink):
    transport.queue("recordDecisions", OK)

    result = await gateway.call(
        "recordDecisions", {"conversationId": "conv-1"}, "user-1", TrackedDecisionsResponse
    )
    await recorder.flush()

    assert isinstance(result, TrackedDecisionsResponse)
    assert result.persisted == 2
    [event] = telemetry_sink.events
    assert event.success and event.attempt_count == 1 and not event.cache_hit
    assert get_latency_stats("ai.recordDecisions.latency")["count"] == 1


@pytest.mark.asyncio
async def test_retries_transient_failures_with_backoff(
    gateway, transport, recorder, telemetry_sink, sleeper
):
    transport.queue(
        "recordDecisions",
        NetworkError("reset"),
        ServerError("unavailable", status_code=503, retryable=True),
        OK,
    )

    result = await gateway.call("recordDecisions", {}, "user-1")
    await recorder.flush()

    assert result["persisted"] == 2
    assert len(transport.calls) == 3
    assert sleeper.delays == [0.5, 1.0]
    [event] = telemetry_sink.events
    assert event.success and event.attempt_count == 3


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(gateway, transport, recorder, telemetry_sink):
    transport.queue("recordDecisions", *[NetworkError("down")] * 3)

    with pytest.raises(NetworkError):
        await gateway.call("recordDecisions", {}, "user-1")
    await recorder.flush()

    assert len(transport.calls) == 3
    [event] = telemetry_sink.events
    assert not event.success
    assert event.attempt_count == 3
    assert event.error_type == "network"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        UnauthorizedError(),
        ServerError("bad request", status_code=400, retryable=False),
    ],
)
async def test_does_not_retry_permanent_failures(gateway, transport, sleeper, error):
    transport.queue("recordDecisions", error)

    with pytest.raises(type(error)):
        await gateway.call("recordDecisions", {}, "user-1")

    assert len(transport.calls) == 1
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_non_object_response_is_invalid(gateway, transport):
    transport.queue("recordDecisions", ["not", "an", "object"])

    with pytest.raises(InvalidResponseError):
        await gateway.call("recordDecisions", {}, "user-1")
    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_schema_mismatch_is_invalid_and_not_retried(gateway, transport):
    transport.queue("recordDecisions", {"analyzed": "lots"})

    with pytest.raises(InvalidResponseError):
        await gateway.call("recordDecisions", {}, "user-1", TrackedDecisionsResponse)
    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_credentials_refreshed_once_per_ttl(gateway, transport, auth, clock):
    transport.set_handler("recordDecisions", lambda payload: OK)

    await gateway.call("recordDecisions", {}, "user-1")
    await gateway.call("recordDecisions", {}, "user-1")
    assert auth.refresh_count == 1

    clock.advance(301)
    await gateway.call("recordDecisions", {}, "user-1")
    assert auth.refresh_count == 2
    assert all(token == "token-1" for _, _, token in transport.calls)


@pytest.mark.asyncio
async def test_refresh_failure_falls_back_to_current_token(transport, recorder, sleeper, clock):
    class FlakyAuth:
        current_user_id = "user-1"

        async def get_token(self, force_refresh=False):
            if force_refresh:
                raise RuntimeError("refresh endpoint down")
            return "stale-token"

    gateway = RemoteCallGateway(transport, FlakyAuth(), recorder, sleep=sleeper, clock=clock)
    transport.queue("recordDecisions", OK)

    await gateway.call("recordDecisions", {}, "user-1")

    assert transport.calls[0][2] == "stale-token"


@pytest.mark.asyncio
async def test_invalidate_credentials_forces_refresh(gateway, transport, auth):
    transport.set_handler("recordDecisions", lambda payload: OK)

    await gateway.call("recordDecisions", {}, "user-1")
    gateway.invalidate_credentials("user-1")
    await gateway.call("recordDecisions", {}, "user-1")

    assert auth.refresh_count == 2
