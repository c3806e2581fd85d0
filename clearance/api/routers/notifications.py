"""In-app notification inbox endpoints."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from clearance.api.deps import get_current_user, get_inbox
from clearance.core.identity import CurrentUser
from clearance.services.notifications import DatabaseNotificationSink

router = APIRouter(prefix="/notifications", tags=["notifications"])


# Schemas
class NotificationResponse(BaseModel):
    id: str
    user_id: str
    title: str
    message: str
    kind: str
    event_type: Optional[str] = None
    is_read: bool
    extra_data: Dict[str, Any] = {}
    created_at: Optional[str] = None


class NotificationListResponse(BaseModel):
    items: List[NotificationResponse]
    unread_count: int


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkReadResponse(BaseModel):
    updated: int


# Endpoints
@router.get("", response_model=NotificationListResponse)
def list_notifications(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: CurrentUser = Depends(get_current_user),
    inbox: DatabaseNotificationSink = Depends(get_inbox),
):
    """List the current user's notifications, newest first."""
    items = inbox.list_notifications(
        current_user.id, unread_only=unread_only, limit=limit, offset=offset
    )
    return NotificationListResponse(
        items=[NotificationResponse(**n) for n in items],
        unread_count=inbox.unread_count(current_user.id),
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count(
    current_user: CurrentUser = Depends(get_current_user),
    inbox: DatabaseNotificationSink = Depends(get_inbox),
):
    return UnreadCountResponse(unread_count=inbox.unread_count(current_user.id))


@router.post("/read-all", response_model=MarkReadResponse)
def mark_all_read(
    current_user: CurrentUser = Depends(get_current_user),
    inbox: DatabaseNotificationSink = Depends(get_inbox),
):
    return MarkReadResponse(updated=inbox.mark_all_read(current_user.id))


@router.post("/{notification_id}/read", response_model=MarkReadResponse)
def mark_read(
    notification_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    inbox: DatabaseNotificationSink = Depends(get_inbox),
):
    if not inbox.mark_read(current_user.id, notification_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )
    return MarkReadResponse(updated=1)
