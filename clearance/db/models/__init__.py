"""Database models for the clearance portal."""

from clearance.db.models.clearance import ClearanceRequest, ClearanceSubmission
from clearance.db.models.notification import (
    Notification,
    NotificationKind,
    NotificationEventType,
)

__all__ = [
    "ClearanceRequest",
    "ClearanceSubmission",
    "Notification",
    "NotificationKind",
    "NotificationEventType",
]
