"""Mutation Coordinator — optimistic apply, then confirm or roll back."""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Any, TypeVar

from cmms_sync.application.interfaces import RemoteClient
from cmms_sync.application.services.entity_store import EntityStore
from cmms_sync.application.services.notifier import Notifier
from cmms_sync.domain.entities import (
    EntityType,
    Mutation,
    MutationKind,
    Record,
    new_client_token,
    tentative_id,
)
from cmms_sync.domain.exceptions import (
    DuplicateEntityError,
    EntityNotFoundError,
    MutationTimeoutError,
    RemoteError,
)
from cmms_sync.infrastructure.logging.colored_logger import SyncLogger, SyncStage

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Something went wrong. Please try again."

T = TypeVar("T")


class MutationCoordinator:
    """Runs create/update/delete for one entity type against its EntityStore.

    Every mutation is made visible locally first (PENDING), then sent to the
    remote client. A confirmed answer replaces the optimistic record with the
    server row; any failure restores the collection to its state before the
    mutation and reports the error through the notifier.

    Mutations on the same record id run one after the other. After a create
    is confirmed its tentative id is aliased to the server id, so a call made
    with the tentative id while the create was in flight lands on the
    confirmed record.
    """

    def __init__(
        self,
        entity_type: EntityType,
        store: EntityStore,
        remote: RemoteClient,
        notifier: Notifier,
        *,
        timeout_seconds: float | None = 30.0,
    ) -> None:
        self._entity_type = entity_type
        self._store = store
        self._remote = remote
        self._notifier = notifier
        self._timeout = timeout_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._aliases: dict[str, str] = {}
        self._pending: list[Mutation] = []
        self._log = SyncLogger("MutationCoordinator")

    @property
    def pending(self) -> list[Mutation]:
        """Mutations that are applied locally but not yet resolved."""
        return list(self._pending)

    def resolve_id(self, record_id: str) -> str:
        """Map a tentative id to the server id it was confirmed as."""
        return self._aliases.get(record_id, record_id)

    def forget(self, record_id: str) -> None:
        """Drop the aliases that point at a record which no longer exists."""
        for tentative in [t for t, server_id in self._aliases.items() if server_id == record_id]:
            del self._aliases[tentative]

    # ── Create ─────────────────────────────────────────────────────

    async def submit_create(self, fields: dict[str, Any], *, success_message: str | None = None) -> Mutation:
        """Insert a tentative record, then swap it for the server row.

        ``fields`` may carry an ``id``; otherwise a tentative id is minted
        from the entity type's prefix and the current time.
        """
        data = dict(fields)
        requested_id = data.pop("id", None)
        if requested_id is not None and requested_id in self._store:
            raise DuplicateEntityError(self._entity_type.label, "id", requested_id)
        record_id = requested_id or self._fresh_id()
        record = Record(id=record_id, data=data, client_token=new_client_token())

        async with self._lock(record_id):
            self._store.insert(record)
            mutation = self._begin(MutationKind.CREATE, record_id, record.client_token)
            try:
                with self._log.timed_step(SyncStage.REMOTE, f"create {record_id}"):
                    confirmed = await self._call(self._remote.create(record))
            except BaseException as exc:
                self._store.remove(record_id)
                self._roll_back(mutation, exc)
                if not isinstance(exc, RemoteError):
                    raise
                return mutation
            finally:
                self._pending.remove(mutation)

            if confirmed.client_token is None:
                confirmed = replace(confirmed, client_token=record.client_token)
            self._store.replace(record_id, confirmed)
            if confirmed.id != record_id:
                self._aliases[record_id] = confirmed.id
            mutation.mark_confirmed(confirmed.id)
            self._log.step_complete(SyncStage.CONFIRM, f"{record_id} → {confirmed.id}")
            self._notifier.success(success_message or f"{self._entity_type.label} created")
            return mutation

    # ── Update ─────────────────────────────────────────────────────

    async def submit_update(
        self,
        record_id: str,
        fields: dict[str, Any],
        *,
        quiet: bool = False,
    ) -> Mutation:
        """Merge ``fields`` into the record, then adopt the server row.

        On failure the record is put back exactly as it was. ``quiet``
        suppresses both the success and the error notification.
        """
        async with self._serialized(record_id) as target:
            previous = self._store.get(target)
            if previous is None or self._store.is_hidden(target):
                raise EntityNotFoundError(self._entity_type.label, record_id)

            self._store.put(previous.merged(fields))
            mutation = self._begin(MutationKind.UPDATE, target, previous.client_token)
            try:
                with self._log.timed_step(SyncStage.REMOTE, f"update {target}"):
                    confirmed = await self._call(self._remote.update(target, dict(fields)))
            except BaseException as exc:
                self._store.put(previous)
                self._roll_back(mutation, exc, quiet=quiet)
                if not isinstance(exc, RemoteError):
                    raise
                return mutation
            finally:
                self._pending.remove(mutation)

            if confirmed.client_token is None:
                confirmed = replace(confirmed, client_token=previous.client_token)
            if not self._store.put(confirmed):
                logger.debug("%s %s vanished before its update was confirmed", self._entity_type.label, target)
            mutation.mark_confirmed(confirmed.id)
            self._log.step_complete(SyncStage.CONFIRM, f"update {target}")
            if not quiet:
                self._notifier.success(f"{self._entity_type.label} updated")
            return mutation

    async def submit_best_effort(self, record_id: str, fields: dict[str, Any]) -> bool:
        """Merge ``fields`` for good and send them without confirm or rollback.

        Waits for other mutations on the record like any update does. Returns
        False if the service rejected or never answered the change; the local
        value stays and nothing is notified.
        """
        async with self._serialized(record_id) as target:
            if self._store.is_hidden(target) or not self._store.update(target, fields):
                raise EntityNotFoundError(self._entity_type.label, record_id)
            try:
                await self._call(self._remote.update(target, dict(fields)))
            except RemoteError as exc:
                logger.debug("Best-effort update of %s %s failed: %s", self._entity_type.label, target, exc.message)
                return False
            return True

    # ── Delete ─────────────────────────────────────────────────────

    async def submit_delete(self, record_id: str) -> Mutation:
        """Hide the record, delete it remotely, then drop it or bring it back."""
        async with self._serialized(record_id) as target:
            if target not in self._store or self._store.is_hidden(target):
                raise EntityNotFoundError(self._entity_type.label, record_id)

            self._store.hide(target)
            mutation = self._begin(MutationKind.DELETE, target, None)
            try:
                with self._log.timed_step(SyncStage.REMOTE, f"delete {target}"):
                    await self._call(self._remote.delete(target))
            except BaseException as exc:
                self._store.unhide(target)
                self._roll_back(mutation, exc)
                if not isinstance(exc, RemoteError):
                    raise
                return mutation
            finally:
                self._pending.remove(mutation)

            self._store.remove(target)
            self.forget(target)
            mutation.mark_confirmed()
            self._log.step_complete(SyncStage.CONFIRM, f"delete {target}")
            self._notifier.success(f"{self._entity_type.label} deleted")
            return mutation

    # ── Internals ──────────────────────────────────────────────────

    def _begin(self, kind: MutationKind, record_id: str, client_token: str | None) -> Mutation:
        mutation = Mutation(
            entity=self._entity_type.tag,
            kind=kind,
            record_id=record_id,
            client_token=client_token,
        )
        self._pending.append(mutation)
        self._log.step_start(SyncStage.OPTIMISTIC, f"{kind.value} {record_id}", entity=self._entity_type.tag)
        return mutation

    def _roll_back(self, mutation: Mutation, exc: BaseException, *, quiet: bool = False) -> None:
        if isinstance(exc, RemoteError):
            message = exc.message or GENERIC_FAILURE_MESSAGE
        else:
            message = GENERIC_FAILURE_MESSAGE
        mutation.mark_rolled_back(message)
        self._log.step_error(
            SyncStage.ROLLBACK,
            f"{mutation.kind.value} {mutation.record_id} rolled back",
            error=exc if isinstance(exc, Exception) else None,
        )
        if isinstance(exc, RemoteError):
            if not quiet:
                self._notifier.error(message)
        elif isinstance(exc, Exception):
            logger.exception("Unexpected failure during %s of %s", mutation.kind.value, mutation.record_id)
            if not quiet:
                self._notifier.error(message)

    async def _call(self, awaitable: Awaitable[T]) -> T:
        if self._timeout is None:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError:
            raise MutationTimeoutError(self._entity_type.tag, self._timeout) from None

    def _fresh_id(self) -> str:
        millis = int(time.time() * 1000)
        candidate = tentative_id(self._entity_type.id_prefix, millis)
        while candidate in self._store or candidate in self._locks:
            millis += 1
            candidate = tentative_id(self._entity_type.id_prefix, millis)
        return candidate

    @asynccontextmanager
    async def _lock(self, record_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(record_id)
        if lock is None:
            lock = self._locks[record_id] = asyncio.Lock()
        self._lock_users[record_id] = self._lock_users.get(record_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[record_id] -= 1
            if self._lock_users[record_id] == 0:
                del self._lock_users[record_id]
                del self._locks[record_id]

    @asynccontextmanager
    async def _serialized(self, record_id: str) -> AsyncIterator[str]:
        """Hold the lock for ``record_id`` and, if it was aliased, for its server id too."""
        async with self._lock(record_id):
            target = self.resolve_id(record_id)
            if target == record_id:
                yield target
            else:
                async with self._lock(target):
                    yield target
