from .record import Record, new_client_token, tentative_id
from .change_event import ChangeEvent, ChangeEventType
from .mutation import Mutation, MutationKind, MutationState
from .notification import Notification, NotificationLevel
from .entity_type import EntityType
from .session import Session
from .activity import ActivityLogEntry, ActivityType

__all__ = [
    "Record",
    "new_client_token",
    "tentative_id",
    "ChangeEvent",
    "ChangeEventType",
    "Mutation",
    "MutationKind",
    "MutationState",
    "Notification",
    "NotificationLevel",
    "EntityType",
    "Session",
    "ActivityLogEntry",
    "ActivityType",
]
