"""
Pytest configuration for convoq tests

Provides fakes for the remote seams (function transport, record store,
telemetry sink), a controllable clock, and an in-memory local store.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from convoq.ai.orchestrator import Orchestrator
from convoq.ai.settings import OrchestratorSettings
from convoq.ai.telemetry import TelemetryEvent
from convoq.auth import StaticAuthSession
from convoq.network import NetworkMonitor
from convoq.observability.telemetry import reset_telemetry
from convoq.remote.record_store import RemoteDocument
from convoq.storage.local import LocalStore
from convoq.storage.models import ConversationRecord, MessageRecord

START = datetime(2025, 10, 24, 12, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeTransport:
    """
    Scripted FunctionTransport.

    queue(name, outcome, ...) lines up results for the next calls to `name`;
    an outcome that is an exception is raised instead of returned. When the
    queue for a name is empty, the default handler (if any) answers.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any], str | None]] = []
        self._queued: dict[str, list[Any]] = {}
        self._handlers: dict[str, Any] = {}

    def queue(self, name: str, *outcomes: Any) -> None:
        self._queued.setdefault(name, []).extend(outcomes)

    def set_handler(self, name: str, handler: Any) -> None:
        self._handlers[name] = handler

    def calls_to(self, name: str) -> list[dict[str, Any]]:
        return [payload for called, payload, _ in self.calls if called == name]

    async def invoke(self, name: str, payload: dict[str, Any], token: str | None) -> Any:
        self.calls.append((name, payload, token))
        queued = self._queued.get(name)
        if queued:
            outcome = queued.pop(0)
        elif name in self._handlers:
            outcome = self._handlers[name](payload)
        else:
            raise AssertionError(f"Unexpected remote call: {name}")
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeRecordStore:
    def __init__(self) -> None:
        self.collections: dict[str, list[RemoteDocument]] = {}
        self.written: dict[str, dict[str, dict[str, Any]]] = {}
        self.updated: dict[str, dict[str, dict[str, Any]]] = {}
        self.deleted: list[tuple[str, str]] = []
        self.fetch_error: Exception | None = None
        self.write_error: Exception | None = None

    def put(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        documents = self.collections.setdefault(collection, [])
        documents[:] = [doc for doc in documents if doc.id != document_id]
        documents.append(RemoteDocument(id=document_id, data=data))

    async def fetch_collection(self, collection: str) -> list[RemoteDocument]:
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(self.collections.get(collection, []))

    async def add_document(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.written.setdefault(collection, {})[document_id] = data

    async def update_document(
        self, collection: str, document_id: str, data: dict[str, Any]
    ) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.updated.setdefault(collection, {})[document_id] = data
        for document in self.collections.get(collection, []):
            if document.id == document_id:
                document.data = {**document.data, **data}

    async def delete_document(self, collection: str, document_id: str) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.deleted.append((collection, document_id))
        documents = self.collections.get(collection, [])
        documents[:] = [doc for doc in documents if doc.id != document_id]


class ListTelemetrySink:
    def __init__(self) -> None:
        self.events: list[TelemetryEvent] = []

    async def write(self, event: TelemetryEvent) -> None:
        self.events.append(event)


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def meeting_response(conversation_id: str, generated_at: datetime, valid_hours: float = 24) -> dict:
    return {
        "suggestions": [
            {
                "startTime": (generated_at + timedelta(days=1)).isoformat(),
                "endTime": (generated_at + timedelta(days=1, hours=1)).isoformat(),
                "score": 0.9,
                "justification": "Everyone is free",
                "dayOfWeek": "Saturday",
                "timeOfDay": "morning",
            }
        ],
        "conversationId": conversation_id,
        "durationMinutes": 60,
        "participantCount": 2,
        "generatedAt": generated_at.isoformat(),
        "expiresAt": (generated_at + timedelta(hours=valid_hours)).isoformat(),
    }


@pytest.fixture(autouse=True)
def _reset_counters():
    reset_telemetry()
    yield
    reset_telemetry()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store():
    local = LocalStore.open(":memory:")
    yield local
    local.close()


@pytest.fixture
def auth() -> StaticAuthSession:
    return StaticAuthSession(user_id="user-1", token="token-1")


@pytest.fixture
def network() -> NetworkMonitor:
    return NetworkMonitor(connected=True)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def record_store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def telemetry_sink() -> ListTelemetrySink:
    return ListTelemetrySink()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def settings() -> OrchestratorSettings:
    return OrchestratorSettings(telemetry_enabled=True)


@pytest.fixture
def orchestrator(
    store, auth, network, transport, record_store, telemetry_sink, sleeper, clock, settings
) -> Orchestrator:
    orch = Orchestrator()
    orch.configure(
        store=store,
        auth=auth,
        network=network,
        transport=transport,
        record_store=record_store,
        settings=settings,
        telemetry_sink=telemetry_sink,
        clock=clock,
        sleep=sleeper,
    )
    return orch


def seed_conversation(
    store: LocalStore,
    conversation_id: str,
    participants: list[str],
    message_id: str,
    intent: str | None = "proposing_time",
    confidence: float | None = 0.92,
    created_at: datetime = START,
) -> None:
    store.conversations.upsert(
        ConversationRecord(id=conversation_id, participant_ids=participants, updated_at=created_at)
    )
    store.messages.upsert(
        MessageRecord(
            id=message_id,
            conversation_id=conversation_id,
            sender_id=participants[0],
            text="Can we meet tomorrow?",
            scheduling_intent=intent,
            intent_confidence=confidence,
            created_at=created_at,
        )
    )


@pytest.fixture
def seed(store):
    """seed(conversation_id, participants, message_id, intent=..., confidence=...)"""

    def _seed(conversation_id, participants, message_id, **kwargs):
        seed_conversation(store, conversation_id, participants, message_id, **kwargs)

    return _seed


@pytest.fixture
def meeting_payload():
    return meeting_response
