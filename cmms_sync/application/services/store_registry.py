"""Reconciled stores — one per entity type, held in a registry keyed by tag."""

import asyncio
import logging
from collections.abc import Callable, Iterator
from typing import Any

from cmms_sync.application.interfaces import ChangeFeed, RemoteClient
from cmms_sync.application.services.entity_store import EntityStore
from cmms_sync.application.services.entity_type_catalog import EntityTypeCatalog
from cmms_sync.application.services.mutation_coordinator import MutationCoordinator
from cmms_sync.application.services.notifier import Notifier
from cmms_sync.application.services.realtime_listener import EventCallback, RealtimeListener
from cmms_sync.domain.entities import ChangeEvent, ChangeEventType, EntityType, Mutation, Record
from cmms_sync.domain.exceptions import UnknownEntityTypeError

logger = logging.getLogger(__name__)

RemoteFactory = Callable[[EntityType], RemoteClient]


class ReconciledStore:
    """EntityStore + MutationCoordinator + RealtimeListener for one entity type.

    Collections marked ``remote: false`` only get the store; records are
    added to them with ``record_local``.

    Usage:
        async with ReconciledStore(work_orders, remote, feed, notifier) as wo:
            await wo.load()
            await wo.create({"title": "Fix pump"})
    """

    def __init__(
        self,
        entity_type: EntityType,
        remote: RemoteClient | None,
        feed: ChangeFeed | None,
        notifier: Notifier,
        *,
        timeout_seconds: float | None = 30.0,
        on_event: EventCallback | None = None,
    ) -> None:
        self.entity_type = entity_type
        self.store = EntityStore(entity_type.tag)
        self.remote = remote
        self.coordinator: MutationCoordinator | None = None
        self.listener: RealtimeListener | None = None
        self._on_event = on_event

        if remote is not None:
            self.coordinator = MutationCoordinator(
                entity_type,
                self.store,
                remote,
                notifier,
                timeout_seconds=timeout_seconds,
            )
            if feed is not None:
                self.listener = RealtimeListener(
                    entity_type.table,
                    self.store,
                    feed,
                    on_event=self._after_event,
                    on_resync=self.resync,
                )

    async def __aenter__(self) -> "ReconciledStore":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def open(self) -> None:
        if self.listener is not None:
            await self.listener.start()

    async def close(self) -> None:
        if self.listener is not None:
            await self.listener.stop()

    async def load(self) -> int:
        """Replace the collection with the server's current rows."""
        if self.remote is None:
            return len(self.store)
        records = await self.remote.fetch_all()
        self.store.reset(records)
        logger.info("Loaded %d %s", len(records), self.entity_type.tag)
        return len(records)

    async def resync(self) -> int:
        """Refill the collection after a feed gap, keeping records with a mutation in flight."""
        if self.remote is None or self.coordinator is None:
            return len(self.store)
        records = await self.remote.fetch_all()
        fetched = {record.id for record in records}
        tokens = {record.client_token for record in records if record.client_token}
        pending = {mutation.record_id for mutation in self.coordinator.pending}
        kept = [
            r for r in self.store.records
            if r.id in pending and r.id not in fetched and r.client_token not in tokens
        ]
        hidden = [record_id for record_id in pending if self.store.is_hidden(record_id)]
        self.store.reset(kept + records)
        for record_id in hidden:
            self.store.hide(record_id)
        logger.info("Resynced %d %s (%d pending kept)", len(records), self.entity_type.tag, len(kept))
        return len(records)

    async def _after_event(self, event: ChangeEvent, changed: bool) -> None:
        if event.type is ChangeEventType.DELETE and event.record_id is not None:
            self.coordinator.forget(event.record_id)
        if self._on_event is not None:
            result = self._on_event(event, changed)
            if asyncio.iscoroutine(result):
                await result

    # ── Mutations ──────────────────────────────────────────────────

    async def create(self, fields: dict[str, Any], *, success_message: str | None = None) -> Mutation:
        return await self._require_coordinator().submit_create(fields, success_message=success_message)

    async def update(self, record_id: str, fields: dict[str, Any], *, quiet: bool = False) -> Mutation:
        return await self._require_coordinator().submit_update(record_id, fields, quiet=quiet)

    async def delete(self, record_id: str) -> Mutation:
        return await self._require_coordinator().submit_delete(record_id)

    async def update_best_effort(self, record_id: str, fields: dict[str, Any]) -> bool:
        return await self._require_coordinator().submit_best_effort(record_id, fields)

    def record_local(self, record: Record) -> bool:
        """Add a record that is never sent to the service (e.g. activity entries)."""
        return self.store.insert(record)

    @property
    def records(self) -> list[Record]:
        return self.store.records

    def get(self, record_id: str) -> Record | None:
        if self.coordinator is not None:
            record_id = self.coordinator.resolve_id(record_id)
        return self.store.get(record_id)

    def _require_coordinator(self) -> MutationCoordinator:
        if self.coordinator is None:
            raise RuntimeError(f"{self.entity_type.label} records are client-side only")
        return self.coordinator


class StoreRegistry:
    """Container of ReconciledStores keyed by entity-type tag.

    ``open_all()`` starts every realtime listener and ``close_all()`` releases
    every subscription; use the registry as an async context manager so the
    channels are always released.
    """

    def __init__(
        self,
        catalog: EntityTypeCatalog,
        remote_factory: RemoteFactory,
        feed: ChangeFeed | None,
        notifier: Notifier,
        *,
        timeout_seconds: float | None = 30.0,
    ) -> None:
        self._catalog = catalog
        self._remote_factory = remote_factory
        self._feed = feed
        self._notifier = notifier
        self._timeout = timeout_seconds
        self._stores: dict[str, ReconciledStore] = {}

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    def register(self, tag: str, *, on_event: EventCallback | None = None) -> ReconciledStore:
        """Create the store for ``tag``. Registering twice returns the existing store."""
        if tag in self._stores:
            return self._stores[tag]
        entity_type = self._catalog.get(tag)
        remote = self._remote_factory(entity_type) if entity_type.remote else None
        store = ReconciledStore(
            entity_type,
            remote,
            self._feed,
            self._notifier,
            timeout_seconds=self._timeout,
            on_event=on_event,
        )
        self._stores[tag] = store
        return store

    def register_all(self) -> None:
        for entity_type in self._catalog:
            self.register(entity_type.tag)

    def get(self, tag: str) -> ReconciledStore:
        try:
            return self._stores[tag]
        except KeyError:
            raise UnknownEntityTypeError(tag) from None

    def __getitem__(self, tag: str) -> ReconciledStore:
        return self.get(tag)

    def __contains__(self, tag: object) -> bool:
        return tag in self._stores

    def __iter__(self) -> Iterator[ReconciledStore]:
        return iter(self._stores.values())

    async def load_all(self) -> None:
        for store in self._stores.values():
            await store.load()

    async def open_all(self) -> None:
        opened: list[ReconciledStore] = []
        try:
            for store in self._stores.values():
                await store.open()
                opened.append(store)
        except BaseException:
            for store in opened:
                await store.close()
            raise

    async def close_all(self) -> None:
        for store in self._stores.values():
            try:
                await store.close()
            except Exception:
                logger.exception("Failed to close %s store", store.entity_type.tag)

    async def __aenter__(self) -> "StoreRegistry":
        await self.open_all()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close_all()
