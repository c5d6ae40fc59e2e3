"""Notifier — fire-and-forget front for a NotificationSink."""

import logging

from cmms_sync.application.interfaces import NotificationSink
from cmms_sync.domain.entities import NotificationLevel

logger = logging.getLogger(__name__)


class Notifier:
    """Wraps a sink so that a failing sink never breaks the caller."""

    def __init__(self, sink: NotificationSink | None) -> None:
        self._sink = sink

    def success(self, message: str) -> None:
        self._send(NotificationLevel.SUCCESS, message)

    def error(self, message: str) -> None:
        self._send(NotificationLevel.ERROR, message)

    def info(self, message: str) -> None:
        self._send(NotificationLevel.INFO, message)

    def warning(self, message: str) -> None:
        self._send(NotificationLevel.WARNING, message)

    def system(self, title: str, body: str) -> None:
        if self._sink is None:
            return
        try:
            self._sink.notify_system(title, body)
        except Exception:
            logger.exception("Failed to send system notification '%s'", title)

    def _send(self, level: NotificationLevel, message: str) -> None:
        if self._sink is None:
            return
        try:
            self._sink.notify(level, message)
        except Exception:
            logger.exception("Notification sink failed for %s message", level.value)
