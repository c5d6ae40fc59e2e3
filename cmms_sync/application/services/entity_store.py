"""Entity Store — the client's ordered view of one entity collection."""

import logging
from typing import Any

from cmms_sync.domain.entities import ChangeEvent, ChangeEventType, Record

logger = logging.getLogger(__name__)


class EntityStore:
    """Ordered collection of records, newest first, at most one per id.

    Only the MutationCoordinator and the RealtimeListener of the same entity
    type mutate a store. Nothing here touches the network.

    Records hidden with ``hide()`` (pending deletion) keep their position
    but are left out of ``records`` and ``snapshot()``.
    """

    def __init__(self, entity: str, records: list[Record] | None = None) -> None:
        self.entity = entity
        self._records: list[Record] = []
        self._hidden: set[str] = set()
        for record in records or []:
            if self._index_of(record.id) is None:
                self._records.append(record)

    # ── Reads ──────────────────────────────────────────────────────

    @property
    def records(self) -> list[Record]:
        return [r for r in self._records if r.id not in self._hidden]

    def snapshot(self) -> list[dict[str, Any]]:
        """Visible records as plain dicts, in display order."""
        return [r.to_dict() for r in self.records]

    def get(self, record_id: str) -> Record | None:
        index = self._index_of(record_id)
        return self._records[index] if index is not None else None

    def find_by_token(self, client_token: str | None) -> Record | None:
        if not client_token:
            return None
        for record in self._records:
            if record.client_token == client_token:
                return record
        return None

    def is_hidden(self, record_id: str) -> bool:
        return record_id in self._hidden

    def __len__(self) -> int:
        return len(self.records)

    def __contains__(self, record_id: object) -> bool:
        return isinstance(record_id, str) and self._index_of(record_id) is not None

    # ── Mutations ──────────────────────────────────────────────────

    def reset(self, records: list[Record]) -> None:
        """Replace the whole collection, e.g. with a fresh server listing."""
        self._records = []
        self._hidden.clear()
        for record in records:
            if self._index_of(record.id) is None:
                self._records.append(record)

    def insert(self, record: Record) -> bool:
        """Prepend ``record`` unless its id is already present."""
        if self._index_of(record.id) is not None:
            return False
        self._records.insert(0, record)
        return True

    def replace(self, old_id: str, record: Record) -> bool:
        """Swap the record at ``old_id`` for ``record`` at the same position.

        If ``record.id`` is already present elsewhere (the change feed got
        there first), that entry is overwritten and the one at ``old_id`` is
        dropped. Returns False when neither id is present.
        """
        old_index = self._index_of(old_id)
        if old_id != record.id:
            existing = self._index_of(record.id)
            if existing is not None:
                self._records[existing] = record
                if old_index is not None:
                    del self._records[old_index]
                    self._hidden.discard(old_id)
                return True
        if old_index is None:
            return False
        if old_id in self._hidden:
            self._hidden.discard(old_id)
            self._hidden.add(record.id)
        self._records[old_index] = record
        return True

    def update(self, record_id: str, fields: dict[str, Any]) -> bool:
        """Merge ``fields`` into the record in place."""
        index = self._index_of(record_id)
        if index is None:
            return False
        self._records[index] = self._records[index].merged(fields)
        return True

    def put(self, record: Record) -> bool:
        """Overwrite the record with the same id wholesale, in place."""
        index = self._index_of(record.id)
        if index is None:
            return False
        self._records[index] = record
        return True

    def remove(self, record_id: str) -> tuple[int, Record] | None:
        """Delete the record, returning its former position and value."""
        index = self._index_of(record_id)
        if index is None:
            return None
        self._hidden.discard(record_id)
        return index, self._records.pop(index)

    def restore(self, index: int, record: Record) -> bool:
        """Put a removed record back at ``index`` unless its id reappeared meanwhile."""
        if self._index_of(record.id) is not None:
            return False
        self._records.insert(min(index, len(self._records)), record)
        return True

    def hide(self, record_id: str) -> bool:
        if self._index_of(record_id) is None:
            return False
        self._hidden.add(record_id)
        return True

    def unhide(self, record_id: str) -> bool:
        if record_id not in self._hidden:
            return False
        self._hidden.discard(record_id)
        return True

    # ── Change feed ────────────────────────────────────────────────

    def apply_change_event(self, event: ChangeEvent) -> bool:
        """Merge a realtime event. Returns True if the collection changed."""
        if event.type is ChangeEventType.DELETE:
            if event.old_id is None:
                return False
            return self.remove(event.old_id) is not None

        record = event.record
        if record is None:
            logger.debug("Ignoring %s event without a row for %s", event.type.value, self.entity)
            return False

        current = self._locate(record)
        if current is not None:
            if current == record:
                return False
            return self.replace(current.id, record)

        if event.type is ChangeEventType.INSERT:
            return self.insert(record)
        # An UPDATE for a row this client never saw is not ours to display.
        return False

    # ── Internals ──────────────────────────────────────────────────

    def _locate(self, record: Record) -> Record | None:
        """Find the local counterpart of an incoming row by id, then by client token."""
        return self.get(record.id) or self.find_by_token(record.client_token)

    def _index_of(self, record_id: str) -> int | None:
        for index, record in enumerate(self._records):
            if record.id == record_id:
                return index
        return None
