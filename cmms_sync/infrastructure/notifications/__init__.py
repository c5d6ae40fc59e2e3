from .logging_notification_sink import LoggingNotificationSink

__all__ = ["LoggingNotificationSink"]
