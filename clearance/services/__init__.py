"""Services for the clearance portal."""

from .notifications import (
    NotificationDispatcher,
    DatabaseNotificationSink,
    WebhookNotificationSink,
    LoggingNotificationSink,
)

__all__ = [
    "NotificationDispatcher",
    "DatabaseNotificationSink",
    "WebhookNotificationSink",
    "LoggingNotificationSink",
]
