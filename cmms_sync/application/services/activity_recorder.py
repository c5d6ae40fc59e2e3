"""Activity recorder — appends entries to the client-side activity feed."""

import time

from cmms_sync.application.services.store_registry import StoreRegistry
from cmms_sync.domain.entities import ActivityLogEntry, ActivityType, tentative_id


class ActivityRecorder:
    def __init__(self, registry: StoreRegistry) -> None:
        self._logs = registry.register("activity_logs")

    @property
    def entries(self) -> list:
        return self._logs.records

    def record(
        self,
        user_id: str,
        action: str,
        type: ActivityType,
        target: str | None = None,
        *,
        id_prefix: str = "log",
    ) -> ActivityLogEntry:
        """Add an entry at the top of the feed and return it."""
        millis = int(time.time() * 1000)
        entry_id = tentative_id(id_prefix, millis)
        while entry_id in self._logs.store:
            millis += 1
            entry_id = tentative_id(id_prefix, millis)

        entry = ActivityLogEntry(user_id=user_id, action=action, type=type, target=target, id=entry_id)
        self._logs.record_local(entry.to_record())
        return entry
