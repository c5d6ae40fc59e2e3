"""Realtime Listener — applies change-feed events to an EntityStore."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from cmms_sync.application.interfaces import ChangeFeed, Subscription
from cmms_sync.application.services.entity_store import EntityStore
from cmms_sync.domain.entities import ChangeEvent
from cmms_sync.domain.exceptions import AuthenticationError, RemoteError
from cmms_sync.infrastructure.logging.colored_logger import SyncLogger, SyncStage

logger = logging.getLogger(__name__)

# Called after an event was applied; receives the event and whether it changed the store.
EventCallback = Callable[[ChangeEvent, bool], Awaitable[None] | None]

# Called after the feed was re-opened, to fetch whatever was missed in the gap.
ResyncCallback = Callable[[], Awaitable[Any]]


class RealtimeListener:
    """Owns one change-feed subscription for one table.

    Runs as an asyncio.Task between ``start()`` and ``stop()``. When the feed
    drops (network or server failure, or the stream simply ends) the listener
    re-subscribes after a growing delay capped at ``max_retry_delay`` and then
    calls ``on_resync``. Only ``stop()`` or rejected credentials end the loop.
    Stopping cancels the task and closes the subscription, so the feed no
    longer holds a reference to the store.
    """

    def __init__(
        self,
        table: str,
        store: EntityStore,
        feed: ChangeFeed,
        on_event: EventCallback | None = None,
        *,
        on_resync: ResyncCallback | None = None,
        retry_delay: float = 1.0,
        max_retry_delay: float = 30.0,
    ) -> None:
        self._table = table
        self._store = store
        self._feed = feed
        self._on_event = on_event
        self._on_resync = on_resync
        self._retry_delay = retry_delay
        self._max_retry_delay = max_retry_delay
        self._subscription: Subscription | None = None
        self._task: asyncio.Task | None = None
        self._log = SyncLogger("RealtimeListener")

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Open the subscription and start applying events."""
        if self.is_running:
            return
        if self._subscription is not None:
            await self._subscription.aclose()
        self._subscription = await self._feed.subscribe(self._table)
        self._task = asyncio.create_task(self._run())
        logger.info("Realtime listener started for %s", self._table)

    async def stop(self) -> None:
        """Cancel the loop and release the subscription."""
        task = self._task
        self._task = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        subscription = self._subscription
        self._subscription = None
        if subscription is not None:
            await subscription.aclose()
            logger.info("Realtime listener stopped for %s", self._table)

    async def _run(self) -> None:
        delay = self._retry_delay
        while True:
            try:
                async for event in self._subscription:
                    delay = self._retry_delay
                    try:
                        await self.handle(event)
                    except Exception:
                        logger.exception("Failed to apply %s event on %s", event.type.value, self._table)
                logger.warning("Change feed for %s ended, reconnecting in %.1fs", self._table, delay)
            except AuthenticationError as exc:
                self._log.step_error(SyncStage.REALTIME, f"{self._table} feed rejected credentials", error=exc)
                return
            except RemoteError as exc:
                self._log.step_error(SyncStage.REALTIME, f"{self._table} feed dropped, retry in {delay:.1f}s", error=exc)
            except Exception:
                logger.exception("Change feed for %s closed with an error", self._table)

            delay = await self._reconnect(delay)

    async def _reconnect(self, delay: float) -> float:
        """Wait, re-subscribe and resync. Returns the delay for the next attempt."""
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.aclose()
        while True:
            await asyncio.sleep(delay)
            try:
                self._subscription = await self._feed.subscribe(self._table)
                break
            except RemoteError as exc:
                logger.warning("Re-subscribing to %s failed: %s", self._table, exc.message)
                delay = min(delay * 2 or self._retry_delay, self._max_retry_delay)
        if self._on_resync is not None:
            try:
                await self._on_resync()
            except Exception:
                logger.exception("Resync of %s after reconnect failed", self._table)
        self._log.step_complete(SyncStage.REALTIME, f"{self._table} feed reopened")
        return min(delay * 2 or self._retry_delay, self._max_retry_delay)

    async def handle(self, event: ChangeEvent) -> bool:
        """Apply a single event to the store. Returns True if the store changed."""
        changed = self._store.apply_change_event(event)
        if changed:
            self._log.step_complete(SyncStage.REALTIME, f"{event.type.value} {self._table}/{event.record_id}")
        else:
            self._log.detail(f"{event.type.value} {self._table}/{event.record_id} already applied")
        if self._on_event is not None:
            result = self._on_event(event, changed)
            if asyncio.iscoroutine(result):
                await result
        return changed
