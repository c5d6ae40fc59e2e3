"""Notification sink that writes toasts and OS notifications to the log."""

from collections import deque

from cmms_sync.application.interfaces import NotificationSink
from cmms_sync.domain.entities import Notification, NotificationLevel
from cmms_sync.infrastructure.logging.colored_logger import SyncLogger, SyncStage


class LoggingNotificationSink(NotificationSink):
    """Infrastructure adapter — headless stand-in for the toast/OS layer.

    The last ``history`` notifications are kept in ``recent`` so that a
    front end (or a test) can read them back.
    """

    def __init__(self, history: int = 100) -> None:
        self._log = SyncLogger("Notifications")
        self.recent: deque[Notification] = deque(maxlen=history)

    def notify(self, level: NotificationLevel, message: str) -> None:
        self.recent.append(Notification(level=level, message=message))
        if level is NotificationLevel.ERROR:
            self._log.step_error(SyncStage.NOTIFY, message)
        else:
            self._log.step_complete(SyncStage.NOTIFY, message, level=level.value)

    def notify_system(self, title: str, body: str) -> None:
        self.recent.append(Notification(level=NotificationLevel.INFO, message=f"{title}: {body}"))
        self._log.step_start(SyncStage.NOTIFY, title, body=body)
