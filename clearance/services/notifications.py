"""Notification delivery for clearance workflow events.

Handles:
- Rendering event messages from jinja2 templates
- In-app notifications stored in the database (the student/officer inbox)
- Webhook delivery to an external system
- Fire-and-forget dispatch: a failing sink is logged, never raised

Dispatch always happens after the triggering state change has committed,
so a delivery failure can never roll the workflow back.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol

import httpx
from jinja2 import Template
from sqlalchemy import and_
from sqlalchemy.orm import Session

from clearance.db.models.notification import (
    Notification,
    NotificationEventType,
    NotificationKind,
)

logger = logging.getLogger(__name__)


# Message templates per workflow event
MESSAGE_TEMPLATES: Dict[NotificationEventType, Dict[str, Any]] = {
    NotificationEventType.CLEARANCE_INITIATED: {
        "title": "Clearance Initiated",
        "kind": NotificationKind.INFO,
        "body": "Your clearance process has started. Submit your documents to {{ office_name }} to begin.",
    },
    NotificationEventType.SUBMISSION_RECEIVED: {
        "title": "New Clearance Submission",
        "kind": NotificationKind.INFO,
        "body": (
            "{{ student_name }} ({{ student_matric }}) submitted {{ document_count }} "
            "document{{ 's' if document_count != 1 }} for {{ office_name }} review."
        ),
    },
    NotificationEventType.SUBMISSION_RESUBMITTED: {
        "title": "Clearance Resubmission",
        "kind": NotificationKind.INFO,
        "body": (
            "{{ student_name }} ({{ student_matric }}) resubmitted documents to {{ office_name }} "
            "after a rejection (attempt {{ attempt }})."
        ),
    },
    NotificationEventType.DOCUMENTS_UPLOADED: {
        "title": "Documents Received",
        "kind": NotificationKind.SUCCESS,
        "body": "Your documents for {{ office_name }} were received and are awaiting review.",
    },
    NotificationEventType.STEP_APPROVED: {
        "title": "Clearance Step Approved",
        "kind": NotificationKind.SUCCESS,
        "body": (
            "{{ office_name }} approved your clearance."
            "{% if comment %} Comment: {{ comment }}{% endif %}"
        ),
    },
    NotificationEventType.STEP_REJECTED: {
        "title": "Clearance Step Rejected",
        "kind": NotificationKind.ERROR,
        "body": (
            "{{ office_name }} rejected your clearance submission. Reason: {{ comment }}. "
            "Please correct your documents and resubmit."
        ),
    },
    NotificationEventType.CLEARANCE_COMPLETED: {
        "title": "Clearance Completed",
        "kind": NotificationKind.SUCCESS,
        "body": (
            "Congratulations! All {{ total_offices }} offices have approved your clearance. "
            "You can now access your NYSC form and ID card."
        ),
    },
}


class NotificationSink(Protocol):
    """Delivery transport for one rendered notification."""

    def notify(
        self,
        user_id: str,
        message: str,
        kind: NotificationKind,
        *,
        title: str = "",
        event_type: Optional[NotificationEventType] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...


class LoggingNotificationSink:
    """Writes notifications to the application log."""

    def notify(
        self,
        user_id: str,
        message: str,
        kind: NotificationKind,
        *,
        title: str = "",
        event_type: Optional[NotificationEventType] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        logger.info(f"Notification for {user_id} [{kind.value}] {title}: {message}")


class DatabaseNotificationSink:
    """
    Stores notifications in the ``notifications`` table.

    Also serves the inbox queries behind ``/api/notifications``.
    """

    def __init__(self, db: Session):
        self.db = db

    def notify(
        self,
        user_id: str,
        message: str,
        kind: NotificationKind,
        *,
        title: str = "",
        event_type: Optional[NotificationEventType] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        notification = Notification(
            id=uuid.uuid4(),
            user_id=user_id,
            title=title or kind.value.title(),
            message=message,
            kind=kind.value,
            event_type=event_type.value if event_type else None,
            extra_data=extra or {},
        )
        self.db.add(notification)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def list_notifications(
        self,
        user_id: str,
        *,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Get a user's notifications, newest first."""
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read == False)  # noqa: E712

        notifications = query.order_by(
            Notification.created_at.desc()
        ).offset(offset).limit(limit).all()

        return [self._notification_to_dict(n) for n in notifications]

    def unread_count(self, user_id: str) -> int:
        return self.db.query(Notification).filter(
            and_(
                Notification.user_id == user_id,
                Notification.is_read == False,  # noqa: E712
            )
        ).count()

    def mark_read(self, user_id: str, notification_id: str) -> bool:
        """Mark one of the user's notifications read. Returns False if not found."""
        try:
            notification_uuid = uuid.UUID(str(notification_id))
        except ValueError:
            return False

        updated = self.db.query(Notification).filter(
            and_(
                Notification.id == notification_uuid,
                Notification.user_id == user_id,
            )
        ).update({"is_read": True}, synchronize_session=False)
        self.db.commit()
        return updated == 1

    def mark_all_read(self, user_id: str) -> int:
        """Mark every unread notification of the user read. Returns the count."""
        updated = self.db.query(Notification).filter(
            and_(
                Notification.user_id == user_id,
                Notification.is_read == False,  # noqa: E712
            )
        ).update({"is_read": True}, synchronize_session=False)
        self.db.commit()
        return updated

    def _notification_to_dict(self, notification: Notification) -> Dict[str, Any]:
        return {
            "id": str(notification.id),
            "user_id": notification.user_id,
            "title": notification.title,
            "message": notification.message,
            "kind": notification.kind,
            "event_type": notification.event_type,
            "is_read": notification.is_read,
            "extra_data": notification.extra_data or {},
            "created_at": notification.created_at.isoformat() if notification.created_at else None,
        }


class WebhookNotificationSink:
    """POSTs each notification as JSON to a configured URL."""

    def __init__(self, url: str, timeout: float = 10, client: Optional[httpx.Client] = None):
        """
        Args:
            url: Webhook endpoint
            timeout: Request timeout in seconds
            client: Preconfigured client, mainly for tests
        """
        self.url = url
        self.timeout = timeout
        self._client = client

    def notify(
        self,
        user_id: str,
        message: str,
        kind: NotificationKind,
        *,
        title: str = "",
        event_type: Optional[NotificationEventType] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        payload = self._build_payload(user_id, message, kind, title, event_type, extra)
        if self._client is not None:
            response = self._client.post(self.url, json=payload)
            response.raise_for_status()
            return

        with httpx.Client(timeout=self.timeout) as client:
            response = client.post(self.url, json=payload)
            response.raise_for_status()

    def _build_payload(
        self,
        user_id: str,
        message: str,
        kind: NotificationKind,
        title: str,
        event_type: Optional[NotificationEventType],
        extra: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        return {
            "event": event_type.value if event_type else None,
            "timestamp": datetime.utcnow().isoformat(),
            "user_id": user_id,
            "title": title,
            "message": message,
            "kind": kind.value,
            "data": extra or {},
        }


class NotificationDispatcher:
    """
    Renders workflow events and fans them out to every sink.

    Failures are logged per sink; ``dispatch`` never raises.
    """

    def __init__(self, sinks: Optional[Iterable[NotificationSink]] = None):
        self.sinks: List[NotificationSink] = list(sinks) if sinks is not None else [LoggingNotificationSink()]

    def render(self, event_type: NotificationEventType, context: Dict[str, Any]) -> Dict[str, Any]:
        """Render the title, body and kind for an event."""
        template = MESSAGE_TEMPLATES[event_type]
        return {
            "title": template["title"],
            "kind": template["kind"],
            "message": Template(template["body"]).render(**context).strip(),
        }

    def dispatch(
        self,
        event_type: NotificationEventType,
        user_id: str,
        context: Dict[str, Any],
    ) -> int:
        """
        Deliver an event notification to a user.

        Returns:
            Number of sinks that delivered successfully
        """
        try:
            rendered = self.render(event_type, context)
        except Exception:
            logger.exception(f"Failed to render {event_type.value} notification for {user_id}")
            return 0

        delivered = 0
        for sink in self.sinks:
            try:
                sink.notify(
                    user_id,
                    rendered["message"],
                    rendered["kind"],
                    title=rendered["title"],
                    event_type=event_type,
                    extra=_json_safe(context),
                )
                delivered += 1
            except Exception:
                logger.exception(
                    f"Failed to deliver {event_type.value} notification to {user_id} "
                    f"via {type(sink).__name__}"
                )
        return delivered


def _json_safe(context: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: value if isinstance(value, (str, int, float, bool, type(None))) else str(value)
        for key, value in context.items()
    }
