"""REST remote client — implements the RemoteClient port over httpx.

Talks to the persistence service's serverless routes:
``GET /{endpoint}``, ``POST /{endpoint}``, ``PATCH /{endpoint}/{id}`` and
``DELETE /{endpoint}/{id}``. Requests carry the session's bearer token;
bodies are JSON with snake_case keys.
"""

import logging
from collections.abc import Callable
from typing import Any

import httpx

from cmms_sync.application.interfaces import RemoteClient
from cmms_sync.domain.entities import EntityType, Record
from cmms_sync.domain.exceptions import (
    AuthenticationError,
    NetworkError,
    RemoteError,
    ServerError,
    ValidationError,
)
from cmms_sync.infrastructure.http.field_mapping import TOKEN_WIRE_NAME, FieldMapper

logger = logging.getLogger(__name__)

# Returns the current bearer token, or None when signed out
TokenProvider = Callable[[], str | None]


class HttpRemoteClient(RemoteClient):
    """Infrastructure adapter — one entity collection on the persistence service.

    Share one ``httpx.AsyncClient`` between the clients of all entity types
    to reuse its connection pool. Without one, a client is created and
    closed per call.
    """

    def __init__(
        self,
        entity_type: EntityType,
        base_url: str,
        token_provider: TokenProvider | None = None,
        http_client: httpx.AsyncClient | None = None,
        *,
        on_unauthorized: Callable[[], None] | None = None,
        timeout: float = 30.0,
    ):
        self._entity_type = entity_type
        self._base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._http_client = http_client
        self._on_unauthorized = on_unauthorized
        self._timeout = timeout
        self._mapper = FieldMapper(entity_type)

    @property
    def mapper(self) -> FieldMapper:
        return self._mapper

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self._token_provider() if self._token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _url(self, record_id: str | None = None) -> str:
        url = f"{self._base_url}/{self._entity_type.endpoint}"
        if record_id is not None:
            url = f"{url}/{record_id}"
        return url

    async def fetch_all(self) -> list[Record]:
        rows = await self._request("GET", self._url())
        if not isinstance(rows, list):
            raise ServerError(self._entity_type.tag, "Expected a list of rows", 200)
        return [self._mapper.from_wire(row) for row in rows]

    async def create(self, record: Record) -> Record:
        payload = self._mapper.to_wire(record.data)
        if record.client_token:
            payload[TOKEN_WIRE_NAME] = record.client_token
        row = await self._request("POST", self._url(), json=payload)
        return self._mapper.from_wire(row)

    async def update(self, record_id: str, fields: dict[str, Any]) -> Record:
        row = await self._request("PATCH", self._url(record_id), json=self._mapper.to_wire(fields))
        return self._mapper.from_wire(row)

    async def delete(self, record_id: str) -> None:
        await self._request("DELETE", self._url(record_id))

    async def _get_client(self) -> httpx.AsyncClient:
        """Return the injected client or create a new one."""
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout)

    async def _request(self, method: str, url: str, *, json: Any = None) -> Any:
        client = await self._get_client()
        should_close = self._http_client is None

        try:
            try:
                response = await client.request(method, url, headers=self._get_headers(), json=json)
            except httpx.TransportError as exc:
                logger.warning("%s %s failed: %s", method, url, exc)
                raise NetworkError(self._entity_type.tag, str(exc) or "Network request failed") from exc

            if response.status_code >= 400:
                self._raise_remote_error(response)

            if response.status_code == 204 or not response.content:
                return None
            try:
                return response.json()
            except ValueError as exc:
                raise ServerError(
                    self._entity_type.tag, "Response is not valid JSON", response.status_code
                ) from exc

        finally:
            if should_close:
                await client.aclose()

    def _raise_remote_error(self, response: httpx.Response) -> None:
        """Raise the RemoteError subclass matching a non-2xx response."""
        try:
            data = response.json()
            message = data.get("error") or data.get("message") or "Request failed"
        except Exception:
            message = response.text or "Request failed"

        status = response.status_code
        entity = self._entity_type.tag
        error: RemoteError
        if status == 401:
            error = AuthenticationError(entity, message, status)
            if self._on_unauthorized is not None:
                self._on_unauthorized()
        elif status < 500:
            error = ValidationError(entity, message, status)
        else:
            error = ServerError(entity, message, status)

        logger.info("%s %s → %d: %s", response.request.method, response.request.url, status, message)
        raise error
