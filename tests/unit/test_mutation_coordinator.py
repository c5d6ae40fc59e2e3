"""Unit tests for the MutationCoordinator."""

import asyncio

import pytest

from cmms_sync.application.services import EntityStore, MutationCoordinator, Notifier
from cmms_sync.application.services.mutation_coordinator import GENERIC_FAILURE_MESSAGE
from cmms_sync.domain.entities import MutationState, NotificationLevel, Record
from cmms_sync.domain.exceptions import (
    DuplicateEntityError,
    EntityNotFoundError,
    NetworkError,
    ServerError,
    ValidationError,
)

from tests.fakes import WORK_ORDERS, FakeRemoteClient, RecordingSink, drain


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def store() -> EntityStore:
    return EntityStore("work_orders")


def _coordinator(store, remote, sink, timeout=30.0) -> MutationCoordinator:
    return MutationCoordinator(WORK_ORDERS, store, remote, Notifier(sink), timeout_seconds=timeout)


# ── Create ──


@pytest.mark.asyncio
async def test_create_failure_rolls_back_and_notifies(store, sink):
    remote = FakeRemoteClient()
    remote.fail_with(ValidationError("work_orders", "title too short", 422))
    coordinator = _coordinator(store, remote, sink)

    mutation = await coordinator.submit_create({"id": "wo-1000", "title": "Fix pump"})

    assert mutation.state is MutationState.ROLLED_BACK
    assert mutation.error_message == "title too short"
    assert store.snapshot() == []
    assert sink.messages == [(NotificationLevel.ERROR, "title too short")]


@pytest.mark.asyncio
async def test_create_success_adopts_server_row(store, sink):
    remote = FakeRemoteClient(server_ids=["wo-77"])
    coordinator = _coordinator(store, remote, sink)

    mutation = await coordinator.submit_create({"id": "wo-1000", "title": "Fix pump"})

    assert mutation.state is MutationState.CONFIRMED
    assert mutation.record_id == "wo-77"
    assert store.snapshot() == [{"id": "wo-77", "title": "Fix pump"}]
    assert sink.messages == [(NotificationLevel.SUCCESS, "Work order created")]


@pytest.mark.asyncio
async def test_create_confirm_swaps_identifier(store, sink):
    remote = FakeRemoteClient(server_ids=["88"])
    coordinator = _coordinator(store, remote, sink)

    mutation = await coordinator.submit_create({"title": "Fix pump"})

    assert [r.id for r in store.records] == ["88"]
    tentative = remote.calls[0][1].id
    assert tentative.startswith("wo-")
    assert tentative not in store
    assert coordinator.resolve_id(tentative) == "88"
    assert mutation.client_token is not None
    assert store.get("88").client_token == mutation.client_token


@pytest.mark.asyncio
async def test_create_is_pending_while_remote_call_is_outstanding(store, sink):
    remote = FakeRemoteClient()
    remote.hold()
    coordinator = _coordinator(store, remote, sink)

    task = asyncio.create_task(coordinator.submit_create({"id": "wo-5", "title": "Leak"}))
    await drain()

    assert store.snapshot() == [{"id": "wo-5", "title": "Leak"}]
    assert [m.state for m in coordinator.pending] == [MutationState.PENDING]
    assert not coordinator.pending[0].is_resolved

    remote.release()
    mutation = await task
    assert mutation.state is MutationState.CONFIRMED
    assert mutation.is_resolved
    assert coordinator.pending == []


@pytest.mark.asyncio
async def test_create_with_existing_id_is_rejected(sink):
    store = EntityStore("work_orders", [Record(id="wo-1", data={})])
    coordinator = _coordinator(store, FakeRemoteClient(), sink)
    with pytest.raises(DuplicateEntityError):
        await coordinator.submit_create({"id": "wo-1", "title": "Again"})


@pytest.mark.asyncio
async def test_unexpected_error_rolls_back_and_propagates(store, sink):
    remote = FakeRemoteClient()
    remote.fail_with(RuntimeError("boom"))
    coordinator = _coordinator(store, remote, sink)

    with pytest.raises(RuntimeError):
        await coordinator.submit_create({"title": "Fix pump"})

    assert len(store) == 0
    assert sink.messages == [(NotificationLevel.ERROR, GENERIC_FAILURE_MESSAGE)]


# ── Update ──


@pytest.mark.asyncio
async def test_update_rollback_restores_exact_prior_record(sink):
    original = Record(id="77", data={"title": "Fix pump", "status": "OPEN"}, client_token="tok")
    store = EntityStore("work_orders", [Record(id="78", data={}), original.copy()])
    remote = FakeRemoteClient(rows=[original.copy()])
    remote.fail_with(ServerError("work_orders", "database unavailable", 503))
    coordinator = _coordinator(store, remote, sink)

    mutation = await coordinator.submit_update("77", {"status": "DONE", "title": "Changed"})

    assert mutation.state is MutationState.ROLLED_BACK
    assert store.get("77") == original
    assert [r.id for r in store.records] == ["78", "77"]
    assert sink.messages == [(NotificationLevel.ERROR, "database unavailable")]


@pytest.mark.asyncio
async def test_update_success_adopts_server_row(sink):
    row = Record(id="77", data={"title": "Fix pump", "status": "OPEN"})
    store = EntityStore("work_orders", [row.copy()])
    coordinator = _coordinator(store, FakeRemoteClient(rows=[row.copy()]), sink)

    mutation = await coordinator.submit_update("77", {"status": "DONE"})

    assert mutation.state is MutationState.CONFIRMED
    assert store.snapshot() == [{"id": "77", "title": "Fix pump", "status": "DONE"}]
    assert sink.messages == [(NotificationLevel.SUCCESS, "Work order updated")]


@pytest.mark.asyncio
async def test_quiet_update_does_not_notify(sink):
    row = Record(id="77", data={"isRead": False})
    store = EntityStore("work_orders", [row.copy()])
    remote = FakeRemoteClient(rows=[row.copy()])
    coordinator = _coordinator(store, remote, sink)

    await coordinator.submit_update("77", {"isRead": True}, quiet=True)
    remote.fail_with(NetworkError("work_orders", "offline"))
    mutation = await coordinator.submit_update("77", {"isRead": False}, quiet=True)

    assert mutation.state is MutationState.ROLLED_BACK
    assert sink.messages == []


@pytest.mark.asyncio
async def test_update_missing_record_raises(store, sink):
    coordinator = _coordinator(store, FakeRemoteClient(), sink)
    with pytest.raises(EntityNotFoundError):
        await coordinator.submit_update("nope", {"title": "X"})


@pytest.mark.asyncio
async def test_concurrent_updates_on_same_id_are_serialized(sink):
    row = Record(id="77", data={"title": "Start"})
    store = EntityStore("work_orders", [row.copy()])
    remote = FakeRemoteClient(rows=[row.copy()])
    remote.hold()
    coordinator = _coordinator(store, remote, sink)

    first = asyncio.create_task(coordinator.submit_update("77", {"title": "A"}))
    second = asyncio.create_task(coordinator.submit_update("77", {"title": "B"}))
    await drain()

    # Only the first update is in flight; the second has not touched the store yet.
    assert remote.calls == [("update", ("77", {"title": "A"}))]
    assert store.get("77").get("title") == "A"

    remote.release()
    await asyncio.gather(first, second)

    assert [call[1] for call in remote.calls] == [("77", {"title": "A"}), ("77", {"title": "B"})]
    assert store.get("77").get("title") == "B"


@pytest.mark.asyncio
async def test_update_with_tentative_id_lands_on_confirmed_record(store, sink):
    remote = FakeRemoteClient(server_ids=["77"])
    remote.hold()
    coordinator = _coordinator(store, remote, sink)

    create = asyncio.create_task(coordinator.submit_create({"id": "wo-1000", "title": "Fix pump"}))
    await drain()
    update = asyncio.create_task(coordinator.submit_update("wo-1000", {"status": "DONE"}))
    await drain()
    assert len(remote.calls) == 1

    remote.release()
    await asyncio.gather(create, update)

    assert remote.calls[1] == ("update", ("77", {"status": "DONE"}))
    assert store.snapshot() == [{"id": "77", "title": "Fix pump", "status": "DONE"}]


@pytest.mark.asyncio
async def test_update_times_out_and_rolls_back(sink):
    row = Record(id="77", data={"title": "Start"})
    store = EntityStore("work_orders", [row.copy()])
    remote = FakeRemoteClient(rows=[row.copy()])
    remote.hold()
    coordinator = _coordinator(store, remote, sink, timeout=0.01)

    mutation = await coordinator.submit_update("77", {"title": "Never"})

    assert mutation.state is MutationState.ROLLED_BACK
    assert mutation.error_message == "No response after 0.01s"
    assert store.get("77") == row
    assert sink.levels() == [NotificationLevel.ERROR]


# ── Delete ──


@pytest.mark.asyncio
async def test_delete_hides_then_removes(sink):
    store = EntityStore("work_orders", [Record(id="77", data={}), Record(id="78", data={})])
    remote = FakeRemoteClient(rows=[Record(id="77", data={})])
    remote.hold()
    coordinator = _coordinator(store, remote, sink)

    task = asyncio.create_task(coordinator.submit_delete("77"))
    await drain()
    assert [r.id for r in store.records] == ["78"]

    remote.release()
    mutation = await task
    assert mutation.state is MutationState.CONFIRMED
    assert "77" not in store
    assert sink.messages == [(NotificationLevel.SUCCESS, "Work order deleted")]


@pytest.mark.asyncio
async def test_delete_failure_restores_record_in_place(sink):
    store = EntityStore("work_orders", [Record(id="a", data={}), Record(id="b", data={}), Record(id="c", data={})])
    remote = FakeRemoteClient()
    remote.fail_with(ValidationError("work_orders", "Work order is referenced by an invoice", 409))
    coordinator = _coordinator(store, remote, sink)

    mutation = await coordinator.submit_delete("b")

    assert mutation.state is MutationState.ROLLED_BACK
    assert [r.id for r in store.records] == ["a", "b", "c"]
    assert sink.messages == [(NotificationLevel.ERROR, "Work order is referenced by an invoice")]


@pytest.mark.asyncio
async def test_remote_error_without_message_uses_generic_text(sink):
    store = EntityStore("work_orders", [Record(id="77", data={})])
    remote = FakeRemoteClient()
    remote.fail_with(ServerError("work_orders", "", 500))
    coordinator = _coordinator(store, remote, sink)

    mutation = await coordinator.submit_delete("77")

    assert mutation.error_message == GENERIC_FAILURE_MESSAGE
    assert sink.messages == [(NotificationLevel.ERROR, GENERIC_FAILURE_MESSAGE)]


# ── Aliases ──


@pytest.mark.asyncio
async def test_confirmed_delete_drops_alias(store, sink):
    coordinator = _coordinator(store, FakeRemoteClient(server_ids=["77"]), sink)
    await coordinator.submit_create({"id": "wo-1000", "title": "Fix pump"})
    assert coordinator.resolve_id("wo-1000") == "77"

    await coordinator.submit_delete("wo-1000")

    assert coordinator.resolve_id("wo-1000") == "wo-1000"


@pytest.mark.asyncio
async def test_forget_keeps_aliases_of_other_records(store, sink):
    coordinator = _coordinator(store, FakeRemoteClient(server_ids=["77", "78"]), sink)
    await coordinator.submit_create({"id": "wo-1", "title": "A"})
    await coordinator.submit_create({"id": "wo-2", "title": "B"})

    coordinator.forget("77")

    assert coordinator.resolve_id("wo-1") == "wo-1"
    assert coordinator.resolve_id("wo-2") == "78"


# ── Best effort ──


@pytest.mark.asyncio
async def test_best_effort_update_keeps_value_when_remote_fails(sink):
    row = Record(id="77", data={"isRead": False})
    store = EntityStore("work_orders", [row.copy()])
    remote = FakeRemoteClient(rows=[row.copy()])
    remote.fail_with(ServerError("work_orders", "database unavailable", 503))
    coordinator = _coordinator(store, remote, sink)

    assert await coordinator.submit_best_effort("77", {"isRead": True}) is False
    assert store.get("77").get("isRead") is True
    assert sink.messages == []


@pytest.mark.asyncio
async def test_best_effort_update_is_bounded_by_timeout(sink):
    row = Record(id="77", data={"isRead": False})
    store = EntityStore("work_orders", [row.copy()])
    remote = FakeRemoteClient(rows=[row.copy()])
    remote.hold()
    coordinator = _coordinator(store, remote, sink, timeout=0.01)

    assert await coordinator.submit_best_effort("77", {"isRead": True}) is False
    assert store.get("77").get("isRead") is True


@pytest.mark.asyncio
async def test_best_effort_update_waits_for_rollback_of_earlier_update(sink):
    row = Record(id="77", data={"title": "Start", "isRead": False})
    store = EntityStore("work_orders", [row.copy()])
    remote = FakeRemoteClient(rows=[row.copy()])
    remote.hold()
    remote.fail_with(ServerError("work_orders", "database unavailable", 503))
    coordinator = _coordinator(store, remote, sink)

    update = asyncio.create_task(coordinator.submit_update("77", {"title": "Edited"}))
    await drain()
    receipt = asyncio.create_task(coordinator.submit_best_effort("77", {"isRead": True}))
    await drain()
    assert len(remote.calls) == 1

    remote.release()
    mutation, delivered = await asyncio.gather(update, receipt)

    assert mutation.state is MutationState.ROLLED_BACK
    assert delivered is True
    assert store.get("77").data == {"title": "Start", "isRead": True}
