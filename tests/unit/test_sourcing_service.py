"""Unit tests for the SourcingService."""

from pathlib import Path

import pytest

from cmms_sync.application.services import (
    ActivityRecorder,
    EntityTypeCatalog,
    Notifier,
    SessionManager,
    SourcingService,
    StoreRegistry,
)
from cmms_sync.domain.entities import MutationState, NotificationLevel, Session
from cmms_sync.domain.exceptions import ValidationError

from tests.fakes import FakeRemotes, RecordingSink

CATALOG_FILE = Path(__file__).resolve().parents[2] / "cmms_sync" / "data" / "entity_types.yaml"


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def remotes() -> FakeRemotes:
    return FakeRemotes()


@pytest.fixture
def registry(remotes, sink) -> StoreRegistry:
    return StoreRegistry(EntityTypeCatalog.from_yaml(CATALOG_FILE), remotes, None, Notifier(sink))


@pytest.fixture
def service(registry) -> SourcingService:
    sessions = SessionManager(Session(user_id="usr-1", role="ADMIN", access_token="a"))
    return SourcingService(registry, sessions, registry.notifier, ActivityRecorder(registry))


@pytest.mark.asyncio
async def test_material_request_broadcast(service, registry, sink):
    mutation = await service.broadcast_material_request("Bearings", 10, "Plant 2", ["ven-1", "ven-2"])

    assert mutation.state is MutationState.CONFIRMED
    [request] = registry["material_requests"].records
    assert request.data["status"] == "OPEN"
    assert request.data["createdBy"] == "usr-1"
    assert request.data["notifiedVendorIds"] == ["ven-1", "ven-2"]

    [entry] = registry["activity_logs"].records
    assert entry.data["action"] == "Broadcasted Material Request"
    assert entry.data["target"] == "Bearings to 2 vendors"
    assert sink.system == [("Material Request Broadcast", "Requesting 10x Bearings at Plant 2")]


@pytest.mark.asyncio
async def test_service_call_broadcast(service, registry, sink):
    await service.broadcast_service_call("Chiller failure", "No cooling in hall B", "Hall B", "HIGH", ["ven-9"])

    [broadcast] = registry["service_broadcasts"].records
    assert broadcast.data["priority"] == "HIGH"
    assert registry["activity_logs"].records[0].data["target"] == "Chiller failure to 1 contractors"
    assert sink.system == [("Service Help Needed!", "HIGH PRIORITY: Chiller failure at Hall B")]


@pytest.mark.asyncio
async def test_rejected_broadcast_leaves_no_trace(service, registry, remotes, sink):
    remotes(registry["material_requests"].entity_type).fail_with(
        ValidationError("material_requests", "quantity must be positive", 422)
    )

    mutation = await service.broadcast_material_request("Bearings", 0, "Plant 2", ["ven-1"])

    assert mutation.state is MutationState.ROLLED_BACK
    assert registry["material_requests"].records == []
    assert registry["activity_logs"].records == []
    assert sink.system == []
    assert sink.messages == [(NotificationLevel.ERROR, "quantity must be positive")]
