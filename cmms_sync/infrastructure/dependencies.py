"""Dependency wiring — connects infrastructure adapters to the application layer."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import lru_cache

import httpx

from cmms_sync.config import Settings, get_settings
from cmms_sync.application.interfaces import ChangeFeed
from cmms_sync.application.schemas import RowDecoder
from cmms_sync.application.services import (
    ActivityRecorder,
    EntityTypeCatalog,
    InventoryService,
    MessageService,
    Notifier,
    SessionManager,
    SourcingService,
    StoreRegistry,
)
from cmms_sync.domain.entities import EntityType, Session
from cmms_sync.infrastructure.http import FieldMapper, HttpRemoteClient
from cmms_sync.infrastructure.logging.log_config import setup_logging
from cmms_sync.infrastructure.notifications import LoggingNotificationSink
from cmms_sync.infrastructure.realtime import SSEChangeFeed

logger = logging.getLogger(__name__)


@lru_cache
def get_catalog(path: str | None = None) -> EntityTypeCatalog:
    """Provides the entity-type catalog — each YAML file is parsed once."""
    return EntityTypeCatalog.from_yaml(path or get_settings().entity_types_file)


def build_decoders(catalog: EntityTypeCatalog) -> dict[str, RowDecoder]:
    """Row decoders keyed by table name, for the change-feed adapters."""
    return {entity_type.table: FieldMapper(entity_type).from_wire for entity_type in catalog}


def build_registry(
    catalog: EntityTypeCatalog,
    sessions: SessionManager,
    http_client: httpx.AsyncClient,
    feed: ChangeFeed | None,
    notifier: Notifier,
    settings: Settings,
) -> StoreRegistry:
    """Provides a StoreRegistry whose remote clients share one HTTP connection pool."""

    def remote_factory(entity_type: EntityType) -> HttpRemoteClient:
        return HttpRemoteClient(
            entity_type,
            settings.api_base_url,
            token_provider=sessions.access_token,
            http_client=http_client,
            on_unauthorized=sessions.teardown,
            timeout=settings.request_timeout_seconds,
        )

    return StoreRegistry(
        catalog,
        remote_factory,
        feed,
        notifier,
        timeout_seconds=settings.mutation_timeout_seconds,
    )


@dataclass
class SyncContext:
    """Everything a front end needs: the stores plus the domain services."""

    sessions: SessionManager
    registry: StoreRegistry
    notifier: Notifier
    activity: ActivityRecorder
    inventory: InventoryService
    messages: MessageService
    sourcing: SourcingService


@asynccontextmanager
async def open_sync_context(
    session: Session | None = None,
    settings: Settings | None = None,
) -> AsyncIterator[SyncContext]:
    """Wire every store, load the collections and start the change feeds.

    Usage:
        async with open_sync_context(session) as ctx:
            await ctx.inventory.consume("inv-1", 2)
    """
    settings = settings or get_settings()
    setup_logging(settings)

    if session is None and settings.access_token:
        session = Session(user_id="service", role="ADMIN", access_token=settings.access_token)
    sessions = SessionManager(session)

    catalog = get_catalog(settings.entity_types_file)
    notifier = Notifier(LoggingNotificationSink())

    async with httpx.AsyncClient(timeout=settings.request_timeout_seconds) as http_client:
        feed = SSEChangeFeed(
            settings.realtime_url,
            build_decoders(catalog),
            token_provider=sessions.access_token,
            on_unauthorized=sessions.teardown,
        )
        registry = build_registry(catalog, sessions, http_client, feed, notifier, settings)
        activity = ActivityRecorder(registry)
        context = SyncContext(
            sessions=sessions,
            registry=registry,
            notifier=notifier,
            activity=activity,
            inventory=InventoryService(
                registry,
                notifier,
                activity,
                alerts_enabled=settings.low_stock_alerts_enabled,
            ),
            messages=MessageService(registry, sessions, notifier),
            sourcing=SourcingService(registry, sessions, notifier, activity),
        )
        registry.register_all()

        await registry.load_all()
        async with registry:
            logger.info("Sync context ready (%d collections)", len(catalog))
            yield context
