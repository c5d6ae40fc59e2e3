"""Abstract remote client interface (port) for the persistence service."""

from abc import ABC, abstractmethod
from typing import Any

from cmms_sync.domain.entities import Record


class RemoteClient(ABC):
    """Port — CRUD calls for one entity collection, implemented in the infrastructure layer.

    Implementations translate field names between the local camelCase shape
    and the wire format, and raise the ``RemoteError`` subclasses from
    ``cmms_sync.domain.exceptions`` on failure.
    """

    @abstractmethod
    async def fetch_all(self) -> list[Record]:
        """Retrieve every row visible to the current session, newest first."""
        ...

    @abstractmethod
    async def create(self, record: Record) -> Record:
        """Persist a new record and return the server-confirmed row.

        Raises:
            ValidationError: The payload was rejected (4xx).
            NetworkError: The service could not be reached.
            ServerError: The service failed (5xx).
        """
        ...

    @abstractmethod
    async def update(self, record_id: str, fields: dict[str, Any]) -> Record:
        """Apply a partial update and return the server-confirmed row."""
        ...

    @abstractmethod
    async def delete(self, record_id: str) -> None:
        """Delete a row."""
        ...
