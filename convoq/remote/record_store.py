"""
Remote record store seam.

Collections hold JSON documents addressed by id. convoq reads insight, alert and
decision collections in full, edits and deletes decisions, and appends feedback,
telemetry and analytics documents.
"""

from __future__ import annotations

from typing import Any, Protocol, TypeVar

import httpx
from pydantic import BaseModel, Field, ValidationError

from convoq.ai.errors import InvalidResponseError, NetworkError, RecordValidationError
from convoq.auth import AuthSession
from convoq.config import RECORD_STORE_URL, REQUEST_TIMEOUT_SECONDS
from convoq.observability.logging import get_logger
from convoq.observability.telemetry import counter
from convoq.remote.transport import decode_json, raise_for_status

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


class RemoteDocument(BaseModel):
    id: str
    data: dict[str, Any] = Field(default_factory=dict)


def validate_document(model: type[M], document: RemoteDocument, collection: str) -> M | None:
    """Parse `document` as `model`; malformed documents are logged, counted and dropped."""
    try:
        return model.model_validate(document.data)
    except ValidationError as e:
        error = RecordValidationError(
            f"{collection}/{document.id} failed validation: {e.error_count()} error(s)",
            record_id=document.id,
        )
        counter(f"sync.{collection}.skipped")
        logger.warning("Skipping malformed document: %s", error.message)
        return None


class RemoteRecordStore(Protocol):
    async def fetch_collection(self, collection: str) -> list[RemoteDocument]: ...

    async def add_document(self, collection: str, document_id: str, data: dict[str, Any]) -> None: ...

    async def update_document(
        self, collection: str, document_id: str, data: dict[str, Any]
    ) -> None: ...

    async def delete_document(self, collection: str, document_id: str) -> None: ...


class HttpRecordStore:
    """
    RemoteRecordStore over a REST document API.

    GET    {base}/collections/{collection}/documents       -> {"documents": [{"id", "data"}]}
    PUT    {base}/collections/{collection}/documents/{id}  <- data
    PATCH  {base}/collections/{collection}/documents/{id}  <- fields to merge
    DELETE {base}/collections/{collection}/documents/{id}
    """

    def __init__(
        self,
        base_url: str = RECORD_STORE_URL,
        auth: AuthSession | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth = auth
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.auth is not None:
            token = await self.auth.get_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _send(self, method: str, url: str, operation: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._get_client().request(
                method, url, headers=await self._headers(), timeout=self.timeout, **kwargs
            )
        except httpx.TimeoutException as e:
            raise NetworkError(f"{operation} timed out") from e
        except httpx.RequestError as e:
            raise NetworkError(f"{operation} unreachable: {e}") from e
        raise_for_status(response, operation)
        return response

    async def fetch_collection(self, collection: str) -> list[RemoteDocument]:
        """
        Fetch every document of `collection`.

        Documents without an id are dropped here; content validation is the
        caller's job.
        """
        operation = f"fetch {collection}"
        response = await self._send(
            "GET", f"{self.base_url}/collections/{collection}/documents", operation
        )
        body = decode_json(response, operation)
        if not isinstance(body, dict) or not isinstance(body.get("documents"), list):
            raise InvalidResponseError(f"{operation} returned no document list")

        documents: list[RemoteDocument] = []
        for item in body["documents"]:
            if not isinstance(item, dict) or not item.get("id"):
                logger.warning("Skipping %s entry without id", collection)
                continue
            data = item.get("data")
            documents.append(
                RemoteDocument(id=str(item["id"]), data=data if isinstance(data, dict) else {})
            )
        return documents

    async def add_document(self, collection: str, document_id: str, data: dict[str, Any]) -> None:
        await self._send(
            "PUT",
            f"{self.base_url}/collections/{collection}/documents/{document_id}",
            f"write {collection}",
            json=data,
        )

    async def update_document(
        self, collection: str, document_id: str, data: dict[str, Any]
    ) -> None:
        """Merge `data` into an existing document."""
        await self._send(
            "PATCH",
            f"{self.base_url}/collections/{collection}/documents/{document_id}",
            f"update {collection}",
            json=data,
        )

    async def delete_document(self, collection: str, document_id: str) -> None:
        await self._send(
            "DELETE",
            f"{self.base_url}/collections/{collection}/documents/{document_id}",
            f"delete {collection}",
        )

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
