"""Domain entity for activity-log entries recorded by the client."""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .record import Record


class ActivityType(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    SYSTEM = "SYSTEM"


@dataclass
class ActivityLogEntry:
    """A single line of the activity feed (e.g. "Low Stock Warning")."""

    user_id: str
    action: str
    type: ActivityType
    target: str | None = None
    id: str = field(default_factory=lambda: f"log-{int(time.time() * 1000)}")
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_record(self) -> Record:
        return Record(
            id=self.id,
            data={
                "userId": self.user_id,
                "action": self.action,
                "type": self.type.value,
                "target": self.target,
                "timestamp": self.timestamp.isoformat(),
            },
        )
