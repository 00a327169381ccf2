from __future__ import annotations

import json

import httpx
import pytest

from convoq.ai.errors import InvalidResponseError, NetworkError, ServerError, UnauthorizedError
from convoq.auth import StaticAuthSession
from convoq.remote.record_store import HttpRecordStore
from convoq.remote.transport import HttpFunctionTransport


def client_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# --- Function transport ---


@pytest.mark.asyncio
async def test_invoke_posts_wrapped_payload_and_unwraps_result():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"result": {"summary": "ok"}})

    transport = HttpFunctionTransport("https://functions.test/", client=client_for(handler))

    result = await transport.invoke("summarizeThreadTask", {"conversationId": "c-1"}, "tok")

    assert result == {"summary": "ok"}
    assert seen["url"] == "https://functions.test/summarizeThreadTask"
    assert seen["auth"] == "Bearer tok"
    assert seen["body"] == {"data": {"conversationId": "c-1"}}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, error, retryable",
    [
        (401, UnauthorizedError, None),
        (403, UnauthorizedError, None),
        (400, ServerError, False),
        (429, ServerError, True),
        (503, ServerError, True),
    ],
)
async def test_invoke_maps_http_status(status, error, retryable):
    transport = HttpFunctionTransport(
        "https://functions.test",
        client=client_for(lambda request: httpx.Response(status, json={})),
    )

    with pytest.raises(error) as excinfo:
        await transport.invoke("smartSearch", {}, None)

    if retryable is not None:
        assert excinfo.value.retryable is retryable
        assert excinfo.value.status_code == status


@pytest.mark.asyncio
async def test_invoke_maps_connection_failures_to_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    transport = HttpFunctionTransport("https://functions.test", client=client_for(handler))

    with pytest.raises(NetworkError):
        await transport.invoke("smartSearch", {}, None)


@pytest.mark.asyncio
async def test_invoke_maps_timeouts_to_network_error():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    transport = HttpFunctionTransport("https://functions.test", client=client_for(handler))

    with pytest.raises(NetworkError, match="timed out"):
        await transport.invoke("smartSearch", {}, None)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response, error",
    [
        (httpx.Response(200, text="<html>"), InvalidResponseError),
        (httpx.Response(200, json={"data": {}}), InvalidResponseError),
        (httpx.Response(200, json={"error": {"message": "INTERNAL"}}), ServerError),
    ],
)
async def test_invoke_rejects_bodies_without_result(response, error):
    transport = HttpFunctionTransport(
        "https://functions.test", client=client_for(lambda request: response)
    )

    with pytest.raises(error):
        await transport.invoke("smartSearch", {}, None)


@pytest.mark.asyncio
async def test_aclose_leaves_injected_client_open():
    client = client_for(lambda request: httpx.Response(200, json={"result": {}}))
    transport = HttpFunctionTransport("https://functions.test", client=client)

    await transport.aclose()

    assert not client.is_closed
    await client.aclose()


# --- Record store ---


@pytest.mark.asyncio
async def test_fetch_collection_skips_entries_without_id():
    def handler(request):
        assert request.url.path == "/collections/proactiveAlerts/documents"
        assert request.headers["Authorization"] == "Bearer token-1"
        return httpx.Response(
            200,
            json={
                "documents": [
                    {"id": "a-1", "data": {"title": "Hi"}},
                    {"data": {"title": "orphan"}},
                    {"id": "a-2"},
                ]
            },
        )

    store = HttpRecordStore(
        "https://records.test",
        auth=StaticAuthSession(user_id="user-1", token="token-1"),
        client=client_for(handler),
    )

    documents = await store.fetch_collection("proactiveAlerts")

    assert [(d.id, d.data) for d in documents] == [("a-1", {"title": "Hi"}), ("a-2", {})]


@pytest.mark.asyncio
async def test_fetch_collection_requires_document_list():
    store = HttpRecordStore(
        "https://records.test",
        client=client_for(lambda request: httpx.Response(200, json={"items": []})),
    )

    with pytest.raises(InvalidResponseError):
        await store.fetch_collection("coordinationInsights")


@pytest.mark.asyncio
async def test_add_document_puts_json():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(204)

    store = HttpRecordStore("https://records.test", client=client_for(handler))

    await store.add_document("ai_feedback", "fb-1", {"rating": 5})

    assert seen == {
        "method": "PUT",
        "path": "/collections/ai_feedback/documents/fb-1",
        "body": {"rating": 5},
    }


@pytest.mark.asyncio
async def test_update_document_patches_and_delete_document_deletes():
    seen = []

    def handler(request):
        body = json.loads(request.content) if request.content else None
        seen.append((request.method, request.url.path, body))
        return httpx.Response(204)

    store = HttpRecordStore("https://records.test", client=client_for(handler))

    await store.update_document(
        "conversations/conv-1/decisions", "d-1", {"followUpStatus": "completed"}
    )
    await store.delete_document("conversations/conv-1/decisions", "d-1")

    assert seen == [
        (
            "PATCH",
            "/collections/conversations/conv-1/decisions/documents/d-1",
            {"followUpStatus": "completed"},
        ),
        ("DELETE", "/collections/conversations/conv-1/decisions/documents/d-1", None),
    ]


@pytest.mark.asyncio
async def test_record_store_errors_use_the_same_taxonomy():
    store = HttpRecordStore(
        "https://records.test",
        client=client_for(lambda request: httpx.Response(502)),
    )

    with pytest.raises(ServerError) as excinfo:
        await store.add_document("ai_telemetry", "e-1", {})
    assert excinfo.value.retryable
