from .entity_store import EntityStore
from .entity_type_catalog import EntityTypeCatalog
from .notifier import Notifier
from .mutation_coordinator import MutationCoordinator
from .realtime_listener import RealtimeListener
from .store_registry import ReconciledStore, StoreRegistry
from .session_manager import SessionManager
from .activity_recorder import ActivityRecorder
from .inventory_service import InventoryService
from .message_service import MessageService
from .sourcing_service import SourcingService

__all__ = [
    "EntityStore",
    "EntityTypeCatalog",
    "Notifier",
    "MutationCoordinator",
    "RealtimeListener",
    "ReconciledStore",
    "StoreRegistry",
    "SessionManager",
    "ActivityRecorder",
    "InventoryService",
    "MessageService",
    "SourcingService",
]
