"""
Transport for named remote inference functions.

Functions follow the callable-function convention: the request body is
``{"data": payload}`` and a successful response is ``{"result": {...}}``.
Transport failures are mapped onto convoq.ai.errors so the gateway can decide
what to retry.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from convoq.ai.errors import InvalidResponseError, NetworkError, ServerError, UnauthorizedError
from convoq.config import FUNCTIONS_BASE_URL, REQUEST_TIMEOUT_SECONDS
from convoq.observability.logging import get_logger
from convoq.observability.telemetry import counter

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class FunctionTransport(Protocol):
    async def invoke(self, name: str, payload: dict[str, Any], token: str | None) -> Any:
        """Invoke `name` and return the decoded JSON result."""
        ...


def raise_for_status(response: httpx.Response, operation: str) -> None:
    """
    Map a non-2xx response onto the error taxonomy.

    Raises:
        UnauthorizedError: 401/403
        ServerError: anything else, retryable for 429 and 5xx gateway codes
    """
    status = response.status_code
    if 200 <= status < 300:
        return

    if status in (401, 403):
        counter("remote.unauthorized")
        raise UnauthorizedError(f"{operation} rejected credentials (HTTP {status})")

    retryable = status in RETRYABLE_STATUS_CODES
    counter(f"remote.http_{status}")
    logger.warning("%s failed with HTTP %d (retryable=%s)", operation, status, retryable)
    raise ServerError(f"{operation} failed (HTTP {status})", status_code=status, retryable=retryable)


def decode_json(response: httpx.Response, operation: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise InvalidResponseError(f"{operation} returned a non-JSON body") from e


class HttpFunctionTransport:
    """FunctionTransport over HTTPS using httpx."""

    def __init__(
        self,
        base_url: str = FUNCTIONS_BASE_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def invoke(self, name: str, payload: dict[str, Any], token: str | None) -> Any:
        """
        POST the payload to the named function.

        Raises:
            NetworkError: timeout or connection failure
            UnauthorizedError: credentials rejected
            ServerError: non-2xx status
            InvalidResponseError: body isn't JSON or lacks a result
        """
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._get_client().post(
                f"{self.base_url}/{name}",
                json={"data": payload},
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("%s timed out after %.1fs", name, self.timeout)
            raise NetworkError(f"{name} timed out") from e
        except httpx.RequestError as e:
            logger.warning("%s request failed: %s", name, e)
            raise NetworkError(f"{name} unreachable: {e}") from e

        raise_for_status(response, name)
        body = decode_json(response, name)

        if isinstance(body, dict) and "result" in body:
            return body["result"]
        if isinstance(body, dict) and "error" in body:
            raise ServerError(f"{name} returned an error: {body['error']}", retryable=False)
        raise InvalidResponseError(f"{name} response has no result")

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
