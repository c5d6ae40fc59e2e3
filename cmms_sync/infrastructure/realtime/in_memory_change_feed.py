"""In-process change feed — asyncio queue broadcaster, one queue per subscriber."""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from pydantic import ValidationError as SchemaValidationError

from cmms_sync.application.interfaces import ChangeFeed, Subscription
from cmms_sync.application.schemas import ChangeFeedMessage, RowDecoder
from cmms_sync.domain.entities import ChangeEvent
from cmms_sync.domain.exceptions import UnknownEntityTypeError

logger = logging.getLogger(__name__)


class _QueueSubscription(Subscription):
    def __init__(self, feed: "InMemoryChangeFeed", table: str, decode: RowDecoder, maxsize: int) -> None:
        self._feed = feed
        self._table = table
        self._decode = decode
        self.queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue(maxsize=maxsize)

    def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        return self._events()

    async def _events(self) -> AsyncIterator[ChangeEvent]:
        while True:
            raw = await self.queue.get()
            if raw is None:
                break
            try:
                message = ChangeFeedMessage.model_validate(raw)
                yield message.to_event(self._table, self._decode)
            except (SchemaValidationError, ValueError) as exc:
                logger.warning("Dropping malformed %s change message: %s", self._table, exc)

    async def aclose(self) -> None:
        self._feed._detach(self._table, self)
        self.end()

    def end(self) -> None:
        """Wake the consumer and make it stop; undelivered messages are dropped."""
        while not self.queue.empty():
            self.queue.get_nowait()
        self.queue.put_nowait(None)


class InMemoryChangeFeed(ChangeFeed):
    """Broadcasts published row changes to every subscriber of a table.

    Each subscription gets its own asyncio.Queue; publishing pushes the raw
    message to all of them. A subscriber whose queue is full is disconnected.
    """

    def __init__(self, decoders: dict[str, RowDecoder], maxsize: int = 0) -> None:
        self._decoders = decoders
        self._maxsize = maxsize
        self._subscriptions: dict[str, list[_QueueSubscription]] = {}

    async def subscribe(self, table: str) -> Subscription:
        decode = self._decoders.get(table)
        if decode is None:
            raise UnknownEntityTypeError(table)
        subscription = _QueueSubscription(self, table, decode, self._maxsize)
        self._subscriptions.setdefault(table, []).append(subscription)
        return subscription

    async def publish(self, table: str, message: dict[str, Any]) -> None:
        """Deliver ``{"eventType": ..., "new": ..., "old": ...}`` to the table's subscribers."""
        dead: list[_QueueSubscription] = []

        for subscription in self._subscriptions.get(table, []):
            try:
                subscription.queue.put_nowait(message)
            except asyncio.QueueFull:
                dead.append(subscription)
                logger.warning("Change-feed subscriber queue full on %s — disconnecting", table)

        for subscription in dead:
            self._detach(table, subscription)
            subscription.end()

    async def shutdown(self) -> None:
        """Disconnect every subscriber."""
        for subscriptions in self._subscriptions.values():
            for subscription in subscriptions:
                subscription.end()
        self._subscriptions.clear()

    def subscriber_count(self, table: str) -> int:
        return len(self._subscriptions.get(table, []))

    def _detach(self, table: str, subscription: _QueueSubscription) -> None:
        subscriptions = self._subscriptions.get(table, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)
