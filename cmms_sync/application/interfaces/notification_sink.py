"""Abstract notification sink interface (port)."""

from abc import ABC, abstractmethod

from cmms_sync.domain.entities import NotificationLevel


class NotificationSink(ABC):
    """Port — where success/failure/info messages are shown to the user."""

    @abstractmethod
    def notify(self, level: NotificationLevel, message: str) -> None:
        """Show a toast-style notification. Fire-and-forget."""
        ...

    @abstractmethod
    def notify_system(self, title: str, body: str) -> None:
        """Raise an operating-system level notification. Fire-and-forget."""
        ...
