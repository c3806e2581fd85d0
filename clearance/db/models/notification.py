"""In-app notification models."""

import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import Column, String, DateTime, JSON, Boolean, Text, Uuid

from clearance.db.base import Base


class NotificationKind(str, Enum):
    """Severity shown next to a notification."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationEventType(str, Enum):
    """Workflow events that trigger notifications."""
    SUBMISSION_RECEIVED = "submission_received"
    SUBMISSION_RESUBMITTED = "submission_resubmitted"
    DOCUMENTS_UPLOADED = "documents_uploaded"
    STEP_APPROVED = "step_approved"
    STEP_REJECTED = "step_rejected"
    CLEARANCE_COMPLETED = "clearance_completed"
    CLEARANCE_INITIATED = "clearance_initiated"


class Notification(Base):
    """
    A message in a user's notification inbox.
    """
    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(64), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    kind = Column(String(20), nullable=False, default=NotificationKind.INFO.value)
    event_type = Column(String(50), nullable=True)

    is_read = Column(Boolean, nullable=False, default=False, index=True)
    extra_data = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self) -> str:
        return f"<Notification user={self.user_id} [{self.kind}] {self.title}>"
