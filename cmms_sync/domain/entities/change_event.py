"""Domain entity for change-feed events."""

from dataclasses import dataclass
from enum import Enum

from .record import Record


class ChangeEventType(str, Enum):
    """Kinds of row changes pushed by the realtime feed."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass
class ChangeEvent:
    """One inbound insert/update/delete for a table.

    INSERT and UPDATE carry the new row in ``record``; DELETE carries only
    ``old_id``.
    """

    type: ChangeEventType
    table: str
    record: Record | None = None
    old_id: str | None = None

    @property
    def record_id(self) -> str | None:
        if self.record is not None:
            return self.record.id
        return self.old_id
