"""Abstract change-feed interface (port) for realtime row notifications."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from cmms_sync.domain.entities import ChangeEvent


class Subscription(ABC):
    """A live subscription to one table. Iterate to receive events; close to release it."""

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        ...

    @abstractmethod
    async def aclose(self) -> None:
        """Release the underlying channel. Safe to call more than once."""
        ...


class ChangeFeed(ABC):
    """Port — server-pushed insert/update/delete notifications, one channel per table."""

    @abstractmethod
    async def subscribe(self, table: str) -> Subscription:
        """Open a channel for ``table``.

        Delivery is at-least-once and ordered within a table.
        """
        ...
