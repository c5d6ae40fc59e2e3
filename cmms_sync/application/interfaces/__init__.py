from .remote_client import RemoteClient
from .change_feed import ChangeFeed, Subscription
from .notification_sink import NotificationSink

__all__ = [
    "RemoteClient",
    "ChangeFeed",
    "Subscription",
    "NotificationSink",
]
