"""SSE change feed — streams row changes from the realtime endpoint using httpx.

Each table has its own stream at ``{realtime_url}/{table}``. The server
sends ``data: {"eventType": ..., "new": ..., "old": ...}`` lines and
``:``-prefixed keepalive comments.
"""

import json
import logging
from collections.abc import AsyncIterator, Callable

import httpx
from pydantic import ValidationError as SchemaValidationError

from cmms_sync.application.interfaces import ChangeFeed, Subscription
from cmms_sync.application.schemas import ChangeFeedMessage, RowDecoder
from cmms_sync.domain.entities import ChangeEvent
from cmms_sync.domain.exceptions import (
    AuthenticationError,
    NetworkError,
    ServerError,
    UnknownEntityTypeError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class _StreamSubscription(Subscription):
    def __init__(self, feed: "SSEChangeFeed", table: str, decode: RowDecoder) -> None:
        self._feed = feed
        self._table = table
        self._decode = decode
        self._closed = False
        self._events_iter: AsyncIterator[ChangeEvent] | None = None

    def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        self._events_iter = self._events()
        return self._events_iter

    async def aclose(self) -> None:
        self._closed = True
        if self._events_iter is not None:
            await self._events_iter.aclose()
            self._events_iter = None

    async def _events(self) -> AsyncIterator[ChangeEvent]:
        client = await self._feed._get_client()
        should_close = self._feed._http_client is None
        url = f"{self._feed._base_url}/{self._table}"

        try:
            try:
                async with client.stream("GET", url, headers=self._feed._get_headers()) as response:
                    if response.status_code != 200:
                        body = await response.aread()
                        self._feed._raise_stream_error(self._table, response.status_code, body)

                    async for line in response.aiter_lines():
                        if self._closed:
                            break
                        # Skip empty lines, keepalive comments and event names
                        if not line or line.startswith(":") or not line.startswith("data: "):
                            continue
                        event = self._parse(line[len("data: "):])
                        if event is not None:
                            yield event
            except httpx.TransportError as exc:
                raise NetworkError(self._table, str(exc) or "Realtime stream interrupted") from exc
        finally:
            if should_close:
                await client.aclose()

    def _parse(self, payload: str) -> ChangeEvent | None:
        try:
            message = ChangeFeedMessage.model_validate(json.loads(payload))
            return message.to_event(self._table, self._decode)
        except (json.JSONDecodeError, SchemaValidationError, ValueError) as exc:
            logger.warning("Dropping malformed %s change message: %s", self._table, exc)
            return None


class SSEChangeFeed(ChangeFeed):
    """Infrastructure adapter — one server-sent-events stream per table."""

    def __init__(
        self,
        base_url: str,
        decoders: dict[str, RowDecoder],
        token_provider: Callable[[], str | None] | None = None,
        http_client: httpx.AsyncClient | None = None,
        *,
        on_unauthorized: Callable[[], None] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._decoders = decoders
        self._token_provider = token_provider
        self._http_client = http_client
        self._on_unauthorized = on_unauthorized

    async def subscribe(self, table: str) -> Subscription:
        decode = self._decoders.get(table)
        if decode is None:
            raise UnknownEntityTypeError(table)
        logger.debug("Opening change stream for %s", table)
        return _StreamSubscription(self, table, decode)

    def _get_headers(self) -> dict[str, str]:
        headers = {"Accept": "text/event-stream"}
        token = self._token_provider() if self._token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Return the injected client or create a new one without a read timeout."""
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=None))

    def _raise_stream_error(self, table: str, status_code: int, body: bytes) -> None:
        try:
            message = json.loads(body).get("error") or "Realtime stream refused"
        except Exception:
            message = body.decode("utf-8", errors="replace") or "Realtime stream refused"
        if status_code == 401:
            if self._on_unauthorized is not None:
                self._on_unauthorized()
            raise AuthenticationError(table, message, status_code)
        if status_code >= 500:
            raise ServerError(table, message, status_code)
        raise ValidationError(table, message, status_code)
